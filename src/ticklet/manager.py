"""Bridges finalized entries from the tracker to the per-day log store."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional

from .models import ActivityEntry, DedupKey
from .store import LogWriter
from .tracker import ActivityTracker

logger = logging.getLogger(__name__)


def merge_entries(*groups: Iterable[ActivityEntry]) -> list[ActivityEntry]:
    """Concatenate, sort by start time and collapse exact duplicates."""
    combined = [entry for group in groups for entry in group if entry.is_closed]
    seen: set[DedupKey] = set()
    merged: list[ActivityEntry] = []
    for entry in sorted(combined, key=lambda item: item.start_time):
        key = entry.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        merged.append(entry)
    return merged


class ActivityManager:
    """Writes every finalized entry through to disk and merges on shutdown.

    The in-memory buffer only remembers what this process appended so the
    final flush can reconcile it with the files; the files stay the source of
    truth.
    """

    def __init__(self, store: LogWriter, tracker: ActivityTracker) -> None:
        self.store = store
        self.tracker = tracker
        self._entries_by_day: dict[date, list[ActivityEntry]] = {}
        tracker.subscribe(self.handle_finalized)

    @property
    def entries_by_day(self) -> dict[date, list[ActivityEntry]]:
        return {day: list(entries) for day, entries in self._entries_by_day.items()}

    def start(self) -> None:
        self.tracker.start()

    def stop(self, finalize: bool = True) -> None:
        if finalize:
            self.tracker.finalize_current()
        self.flush_all()

    def handle_finalized(self, entry: ActivityEntry) -> None:
        day = entry.start_time.date()
        self._entries_by_day.setdefault(day, []).append(entry)
        try:
            self.store.append([entry], day)
        except OSError:
            logger.exception("Failed to append entry for %s", day)

    def flush_all(self) -> int:
        """Merge buffered entries with each day's file; return days written."""
        flushed = 0
        for day, buffered in list(self._entries_by_day.items()):
            if self._merge_and_write(day, buffered) is not None:
                flushed += 1
        return flushed

    def merge_day(self, day: date) -> Optional[tuple[int, int]]:
        """Rewrite one day's file sorted and without duplicates.

        Returns the entry counts before and after, or ``None`` when the file
        could not be read or written.
        """
        return self._merge_and_write(day, [])

    def _merge_and_write(
        self, day: date, buffered: list[ActivityEntry]
    ) -> Optional[tuple[int, int]]:
        try:
            existing = self.store.read(day)
        except (OSError, UnicodeDecodeError):
            # Leave the file untouched when its contents are unknown.
            logger.exception("Failed to read existing log for %s; not flushing it", day)
            return None

        merged = merge_entries(existing, buffered)
        try:
            self.store.write(merged, day)
        except OSError:
            logger.exception("Failed to flush log for %s", day)
            return None
        logger.info("Flushed %d entries for %s", len(merged), day)
        return len(existing), len(merged)
