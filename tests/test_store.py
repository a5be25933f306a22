"""Tests for ticklet.store.CSVLogStore."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from conftest import T0, at, closed_entry
from ticklet.models import ActivityEntry
from ticklet.store import HEADER, CSVLogStore

DAY = T0.date()


def test_read_missing_day_is_empty(store):
    assert store.read(date(2020, 1, 1)) == []


def test_file_name_is_derived_from_day(store):
    path = store.path_for(datetime(2025, 6, 15, 23, 59))
    assert path.name == "ticklet-2025-06-15.csv"
    assert path.parent == store.logs_directory


def test_write_then_read_round_trip(store):
    entries = [
        closed_entry("Code", "main.py", 100, 160),
        closed_entry("Safari", "GitHub", 0, 90),
    ]
    store.write(entries, DAY)

    read = store.read(DAY)
    assert [(e.app_name, e.window_title) for e in read] == [
        ("Safari", "GitHub"),
        ("Code", "main.py"),
    ]
    assert read[0].start_time == at(0)
    assert read[0].end_time == at(90)


def test_file_layout(store):
    store.write([closed_entry("Safari", "GitHub", 0, 90.7)], DAY)
    lines = store.path_for(DAY).read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(HEADER)
    assert lines[1] == "2025-06-15 09:00:00,2025-06-15 09:01:30,90,Safari,GitHub"


def test_special_characters_survive_round_trip(store):
    titles = ['Design, "Round 1"', "notes\nsecond line", "carriage\rreturn", 'say "hi"', ""]
    entries = [closed_entry("Figma", title, i * 10, i * 10 + 5) for i, title in enumerate(titles)]
    store.write(entries, DAY)

    text = store.path_for(DAY).read_text(encoding="utf-8")
    assert '"Design, ""Round 1"""' in text
    assert [e.window_title for e in store.read(DAY)] == titles


def test_open_entries_are_never_serialized(store):
    store.write(
        [closed_entry("A", "", 0, 10), ActivityEntry("B", "", at(20))],
        DAY,
    )
    store.append([ActivityEntry("C", "", at(30))], DAY)
    assert [e.app_name for e in store.read(DAY)] == ["A"]


def test_append_creates_file_with_header(store):
    store.append([closed_entry("A", "x", 0, 10)], DAY)
    lines = store.path_for(DAY).read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(HEADER)
    assert len(lines) == 2


def test_append_creates_missing_directory(tmp_path):
    store = CSVLogStore(logs_directory=tmp_path / "logs")
    store.logs_directory.rmdir()
    store.append([closed_entry("A", "x", 0, 10)], DAY)
    assert len(store.read(DAY)) == 1


def test_append_keeps_existing_content_in_file_order(store):
    store.write([closed_entry("A", "", 100, 200)], DAY)
    store.append([closed_entry("B", "", 0, 50)], DAY)
    store.append([closed_entry("C", "", 300, 400)], DAY)
    assert [e.app_name for e in store.read(DAY)] == ["A", "B", "C"]


def test_append_repairs_missing_trailing_newline(store):
    path = store.path_for(DAY)
    path.write_text(
        ",".join(HEADER) + "\n2025-06-15 09:00:00,2025-06-15 09:00:10,10,A,x",
        encoding="utf-8",
    )
    store.append([closed_entry("B", "y", 20, 30)], DAY)
    assert [e.app_name for e in store.read(DAY)] == ["A", "B"]


def test_read_skips_malformed_lines(store, caplog):
    path = store.path_for(DAY)
    path.write_text(
        "\n".join(
            [
                ",".join(HEADER),
                "2025-06-15 09:00:00,2025-06-15 09:00:10,10,A,x",
                "truncated,line",
                "",
                "not a date,2025-06-15 09:00:10,10,B,y",
                "   ",
                "2025-06-15 09:01:00,2025-06-15 09:02:00,60,C,z",
                "",
                "",
            ]
        ),
        encoding="utf-8",
    )
    with caplog.at_level("WARNING"):
        entries = store.read(DAY)
    assert [e.app_name for e in entries] == ["A", "C"]
    assert "Skipped 2 malformed lines" in caplog.text


def test_appended_carriage_return_title_is_kept_whole(store, caplog):
    store.append([closed_entry("A", "a\rb", 0, 10)], DAY)
    store.append([closed_entry("B", "c", 20, 30)], DAY)
    with caplog.at_level("WARNING"):
        entries = store.read(DAY)
    assert [(e.app_name, e.window_title) for e in entries] == [("A", "a\rb"), ("B", "c")]
    assert "malformed" not in caplog.text


def test_truncated_quoted_title_does_not_swallow_later_records(store, caplog):
    path = store.path_for(DAY)
    path.write_text(
        ",".join(HEADER) + '\n2025-06-15 09:00:00,2025-06-15 09:00:10,10,A,"Design, Ro',
        encoding="utf-8",
    )
    store.append([closed_entry("B", "y", 20, 30)], DAY)
    store.append([closed_entry("C", 'z "quoted", more', 40, 50)], DAY)

    with caplog.at_level("WARNING"):
        entries = store.read(DAY)

    assert [(e.app_name, e.window_title) for e in entries] == [
        ("B", "y"),
        ("C", 'z "quoted", more'),
    ]
    assert "Skipped 1 malformed lines" in caplog.text


def test_quoted_multiline_title_after_truncated_record(store):
    path = store.path_for(DAY)
    path.write_text(
        ",".join(HEADER) + '\n2025-06-15 09:00:00,2025-06-15 09:00:10,10,A,"cut\n',
        encoding="utf-8",
    )
    store.append([closed_entry("B", "first\nsecond", 20, 30)], DAY)
    assert [e.window_title for e in store.read(DAY)] == ["first\nsecond"]


def test_read_recomputes_duration_from_timestamps(store):
    store.path_for(DAY).write_text(
        ",".join(HEADER) + "\n2025-06-15 09:00:00,2025-06-15 09:00:10,999,A,x\n",
        encoding="utf-8",
    )
    assert store.read(DAY)[0].duration_seconds == 10


def test_write_replaces_file_without_leftovers(store):
    store.write([closed_entry("A", "", 0, 10), closed_entry("B", "", 10, 20)], DAY)
    store.write([closed_entry("C", "", 0, 10)], DAY)
    assert [e.app_name for e in store.read(DAY)] == ["C"]
    assert [p.name for p in store.logs_directory.iterdir()] == ["ticklet-2025-06-15.csv"]


def test_write_errors_propagate(store):
    store.path_for(DAY).mkdir()
    with pytest.raises(OSError):
        store.write([closed_entry("A", "", 0, 10)], DAY)
    assert [p.name for p in store.logs_directory.iterdir()] == ["ticklet-2025-06-15.csv"]


def test_append_errors_propagate(store):
    store.path_for(DAY).mkdir()
    with pytest.raises(OSError):
        store.append([closed_entry("A", "", 0, 10)], DAY)


def test_days_lists_log_files(store):
    store.append([closed_entry("A", "", 0, 10)], date(2025, 6, 15))
    store.append([closed_entry("A", "", 0, 10)], date(2025, 6, 2))
    (store.logs_directory / "ticklet-garbage.csv").write_text("x", encoding="utf-8")
    (store.logs_directory / "notes.txt").write_text("x", encoding="utf-8")
    assert store.days() == [date(2025, 6, 2), date(2025, 6, 15)]
