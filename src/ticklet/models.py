"""Domain models for recorded activity."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Union

IDLE_MARKER = "[IDLE]"

DedupKey = tuple[datetime, Optional[datetime], str, str]


@dataclass(slots=True)
class ActivityEntry:
    """A block of time spent in a single application window.

    ``end_time`` stays ``None`` while the entry is the tracker's current entry
    and is set exactly once when the entry is finalized.
    """

    app_name: str
    window_title: str
    start_time: datetime
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def is_idle(self) -> bool:
        return self.app_name == IDLE_MARKER

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def matches(self, app_name: str, window_title: str) -> bool:
        return self.app_name == app_name and self.window_title == window_title

    def closed(self, at: datetime) -> "ActivityEntry":
        """Return a finalized copy ending at ``at``."""
        if at < self.start_time:
            raise ValueError(
                f"end time {at} precedes start time {self.start_time}"
            )
        return replace(self, end_time=at)

    def dedup_key(self) -> DedupKey:
        """Identity used when merging buffered and persisted entries.

        Timestamps are truncated to whole seconds, the resolution of the log
        files, so an entry read back from disk collapses with its in-memory
        original.
        """
        end = self.end_time.replace(microsecond=0) if self.end_time else None
        return (
            self.start_time.replace(microsecond=0),
            end,
            self.app_name,
            self.window_title,
        )

    @classmethod
    def idle(cls, start_time: datetime) -> "ActivityEntry":
        return cls(app_name=IDLE_MARKER, window_title=IDLE_MARKER, start_time=start_time)


@dataclass(frozen=True, slots=True)
class PendingObservation:
    """A focus change seen but not yet stable for the debounce window."""

    app_name: str
    window_title: str
    first_seen: datetime

    def matches(self, app_name: str, window_title: str) -> bool:
        return self.app_name == app_name and self.window_title == window_title


@dataclass(frozen=True, slots=True)
class NoEntry:
    """Tracker has not adopted any focus state yet."""


@dataclass(frozen=True, slots=True)
class Open:
    entry: ActivityEntry


@dataclass(frozen=True, slots=True)
class OpenWithPending:
    entry: ActivityEntry
    pending: PendingObservation


TrackerState = Union[NoEntry, Open, OpenWithPending]
