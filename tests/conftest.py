"""Shared fixtures for the ticklet test suite."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional

import pytest

from ticklet.config import TrackerSettings
from ticklet.models import ActivityEntry
from ticklet.store import CSVLogStore, day_key
from ticklet.tracker import ActivityTracker

T0 = datetime(2025, 6, 15, 9, 0, 0)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


class ManualClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current


class ScriptedSampler:
    """Returns ``sample`` on every poll; set it to ``None`` for no focus."""

    def __init__(self, sample: Optional[tuple[str, str]] = None) -> None:
        self.sample = sample
        self.polls = 0

    def poll(self) -> Optional[tuple[str, str]]:
        self.polls += 1
        return self.sample


class RecordingStore:
    """In-memory LogWriter; ``fail_days`` makes every operation on a day raise."""

    def __init__(self) -> None:
        self.files: dict[date, list[ActivityEntry]] = {}
        self.appends: list[tuple[date, list[ActivityEntry]]] = []
        self.writes: list[tuple[date, list[ActivityEntry]]] = []
        self.fail_days: set[date] = set()
        self.fail_append = False

    def write(self, entries: Iterable[ActivityEntry], day) -> None:
        day = day_key(day)
        if day in self.fail_days:
            raise OSError(f"disk full writing {day}")
        entries = list(entries)
        self.writes.append((day, entries))
        self.files[day] = entries

    def append(self, entries: Iterable[ActivityEntry], day) -> None:
        day = day_key(day)
        if self.fail_append or day in self.fail_days:
            raise OSError(f"permission denied for {day}")
        entries = list(entries)
        self.appends.append((day, entries))
        self.files.setdefault(day, []).extend(entries)

    def read(self, day) -> list[ActivityEntry]:
        day = day_key(day)
        if day in self.fail_days:
            raise OSError(f"cannot read {day}")
        return list(self.files.get(day, []))


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def sampler() -> ScriptedSampler:
    return ScriptedSampler()


@pytest.fixture()
def settings() -> TrackerSettings:
    return TrackerSettings.from_intervals(
        poll_seconds=1, debounce_seconds=3, min_entry_seconds=3, idle_seconds=300
    )


@pytest.fixture()
def tracker(settings, sampler, clock) -> ActivityTracker:
    return ActivityTracker(settings, sampler=sampler, clock=clock)


@pytest.fixture()
def finalized(tracker) -> list[ActivityEntry]:
    collected: list[ActivityEntry] = []
    tracker.subscribe(collected.append)
    return collected


@pytest.fixture()
def store(tmp_path) -> CSVLogStore:
    return CSVLogStore(logs_directory=tmp_path / "logs")


def closed_entry(app: str, title: str, start: float, end: float) -> ActivityEntry:
    return ActivityEntry(app, title, at(start), at(end))
