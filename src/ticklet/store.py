"""Per-day CSV log storage for finalized activity entries."""

from __future__ import annotations

import csv
import io
import logging
import os
import tempfile
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, TextIO, Union

from .models import ActivityEntry
from .paths import get_logs_dir

logger = logging.getLogger(__name__)

HEADER = ("start_time", "end_time", "duration_seconds", "app_name", "window_title")
LINE_DATETIME_FMT = "%Y-%m-%d %H:%M:%S"
FILE_DATE_FMT = "%Y-%m-%d"
FILE_PREFIX = "ticklet-"
FILE_SUFFIX = ".csv"

DayLike = Union[date, datetime]


class LogWriter(Protocol):
    def write(self, entries: Iterable[ActivityEntry], day: DayLike) -> None: ...

    def append(self, entries: Iterable[ActivityEntry], day: DayLike) -> None: ...

    def read(self, day: DayLike) -> list[ActivityEntry]: ...


def day_key(value: DayLike) -> date:
    """Normalize a timestamp to the calendar day it falls on."""
    if isinstance(value, datetime):
        return value.date()
    return value


def _to_row(entry: ActivityEntry) -> list[str]:
    end = entry.end_time
    assert end is not None
    return [
        entry.start_time.strftime(LINE_DATETIME_FMT),
        end.strftime(LINE_DATETIME_FMT),
        str(int((end - entry.start_time).total_seconds())),
        entry.app_name,
        entry.window_title,
    ]


def _closed_sorted(entries: Iterable[ActivityEntry]) -> list[ActivityEntry]:
    closed = [entry for entry in entries if entry.is_closed]
    return sorted(closed, key=lambda entry: entry.start_time)


class CSVLogStore:
    """Reads and writes ``ticklet-YYYY-MM-DD.csv`` files, one per day.

    Only closed entries are ever serialized; open ones are skipped. Filesystem
    errors propagate to the caller unchanged.
    """

    def __init__(self, logs_directory: Optional[Path] = None) -> None:
        self._directory = Path(logs_directory) if logs_directory else get_logs_dir()
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def logs_directory(self) -> Path:
        return self._directory

    def path_for(self, day: DayLike) -> Path:
        return self._directory / f"{FILE_PREFIX}{day_key(day).strftime(FILE_DATE_FMT)}{FILE_SUFFIX}"

    def days(self) -> list[date]:
        """Days that have a log file, oldest first."""
        found: list[date] = []
        for path in self._directory.glob(f"{FILE_PREFIX}*{FILE_SUFFIX}"):
            stamp = path.name[len(FILE_PREFIX) : -len(FILE_SUFFIX)]
            try:
                found.append(datetime.strptime(stamp, FILE_DATE_FMT).date())
            except ValueError:
                continue
        return sorted(found)

    def write(self, entries: Iterable[ActivityEntry], day: DayLike) -> None:
        """Atomically replace the day's file with ``entries`` sorted by start."""
        path = self.path_for(day)
        self._directory.mkdir(parents=True, exist_ok=True)
        rows = [_to_row(entry) for entry in _closed_sorted(entries)]

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.stem}-", suffix=".tmp", dir=self._directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                csv.writer(handle, lineterminator="\n").writerow(HEADER)
                _write_rows(handle, rows)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d entries to %s", len(rows), path)

    def append(self, entries: Iterable[ActivityEntry], day: DayLike) -> None:
        """Add entries to the end of the day's file, creating it if needed."""
        path = self.path_for(day)
        rows = [_to_row(entry) for entry in _closed_sorted(entries)]
        self._directory.mkdir(parents=True, exist_ok=True)

        if not path.exists():
            self.write([], day)
        needs_newline = self._ends_without_newline(path)

        with open(path, "a", encoding="utf-8", newline="") as handle:
            if needs_newline:
                handle.write("\n")
            _write_rows(handle, rows)
        logger.debug("Appended %d entries to %s", len(rows), path)

    def read(self, day: DayLike) -> list[ActivityEntry]:
        """Parse the day's file in file order; a missing file yields ``[]``.

        A record cut off inside a quoted field costs only itself; the next
        line that opens with timestamps is parsed as a new record.
        """
        path = self.path_for(day)
        if not path.exists():
            return []

        with open(path, "r", encoding="utf-8", newline="") as handle:
            lines = list(handle)

        entries: list[ActivityEntry] = []
        skipped = 0
        for line_num, record in _split_records(lines):
            try:
                row = next(csv.reader(io.StringIO(record, newline="")), [])
            except csv.Error as exc:
                skipped += 1
                logger.debug("Unparseable line %d in %s: %s", line_num, path, exc)
                continue

            if not row or all(not field.strip() for field in row):
                continue
            if tuple(row[: len(HEADER)]) == HEADER:
                continue
            entry = _parse_row(row) if not _quote_open(record) else None
            if entry is None:
                skipped += 1
                logger.debug("Skipping malformed line %d in %s", line_num, path)
                continue
            entries.append(entry)

        if skipped:
            logger.warning("Skipped %d malformed lines in %s", skipped, path)
        return entries

    @staticmethod
    def _ends_without_newline(path: Path) -> bool:
        with open(path, "rb") as handle:
            handle.seek(0, os.SEEK_END)
            if handle.tell() == 0:
                return False
            handle.seek(-1, os.SEEK_END)
            return handle.read(1) != b"\n"


def _parse_row(row: list[str]) -> Optional[ActivityEntry]:
    if len(row) < len(HEADER):
        return None
    start_text, end_text, _duration, app_name, window_title = row[: len(HEADER)]
    try:
        start = datetime.strptime(start_text.strip(), LINE_DATETIME_FMT)
        end = datetime.strptime(end_text.strip(), LINE_DATETIME_FMT)
    except ValueError:
        return None
    if end < start:
        return None
    return ActivityEntry(app_name=app_name, window_title=window_title, start_time=start, end_time=end)


def _write_rows(handle: TextIO, rows: Iterable[list[str]]) -> None:
    # Bare carriage returns are only quoted when they are in the line
    # terminator, so rows holding one are written fully quoted.
    plain = csv.writer(handle, lineterminator="\n")
    quoted = csv.writer(handle, lineterminator="\n", quoting=csv.QUOTE_ALL)
    for row in rows:
        writer = quoted if any("\r" in field for field in row) else plain
        writer.writerow(row)


def _quote_open(text: str) -> bool:
    # Escaped quotes come in pairs, so an odd count leaves a field open.
    return text.count('"') % 2 == 1


def _starts_record(line: str) -> bool:
    fields = line.split(",", 2)
    if len(fields) < 3:
        return False
    try:
        for field in fields[:2]:
            datetime.strptime(field.strip().strip('"'), LINE_DATETIME_FMT)
    except ValueError:
        return False
    return True


def _split_records(lines: list[str]) -> Iterator[tuple[int, str]]:
    """Group physical lines into CSV records, yielding ``(line_number, text)``.

    A quoted field may span lines, but never into a line that opens with a
    start and end timestamp; such a line begins a record of its own.
    """
    index = 0
    while index < len(lines):
        start = index
        record = lines[index]
        index += 1
        while _quote_open(record) and index < len(lines) and not _starts_record(lines[index]):
            record += lines[index]
            index += 1
        yield start + 1, record
