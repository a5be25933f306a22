"""Configuration models and helpers for the activity tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the sampling state machine and its loop."""

    poll_interval: timedelta = timedelta(seconds=1)
    debounce_window: timedelta = timedelta(seconds=3)
    min_entry_duration: timedelta = timedelta(seconds=3)
    idle_threshold: timedelta = timedelta(minutes=5)

    @classmethod
    def from_intervals(
        cls,
        poll_seconds: float = 1.0,
        debounce_seconds: float = 3.0,
        min_entry_seconds: float | None = None,
        idle_seconds: float = 300.0,
    ) -> "TrackerSettings":
        min_entry = min_entry_seconds if min_entry_seconds is not None else debounce_seconds
        return cls(
            poll_interval=timedelta(seconds=poll_seconds),
            debounce_window=timedelta(seconds=debounce_seconds),
            min_entry_duration=timedelta(seconds=min_entry),
            idle_threshold=timedelta(seconds=idle_seconds),
        )
