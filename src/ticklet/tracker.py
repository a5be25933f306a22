"""Sampling state machine that turns focus samples into activity entries."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from .clock import Clock, SystemClock
from .config import TrackerSettings
from .models import (
    ActivityEntry,
    NoEntry,
    Open,
    OpenWithPending,
    PendingObservation,
    TrackerState,
)
from .sampler import FocusSampler, NullSampler

logger = logging.getLogger(__name__)

EntryCallback = Callable[[ActivityEntry], None]


class ActivityTracker:
    """Debounces focus changes, detects idleness and finalizes entries.

    The tracker is not thread-safe: ``tick``, ``observe`` and
    ``record_user_activity`` must be driven from a single thread so that
    finalized entries leave in ``start_time`` order. Subscribers are invoked
    synchronously, inside the call that finalized the entry.
    """

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        *,
        sampler: Optional[FocusSampler] = None,
        clock: Optional[Clock] = None,
        samples_imply_activity: bool = True,
    ) -> None:
        self.settings = settings or TrackerSettings()
        self._sampler = sampler or NullSampler()
        self._clock = clock or SystemClock()
        # With a real input probe attached, polled samples must not count as
        # user activity or idleness could never be reached.
        self.samples_imply_activity = samples_imply_activity
        self._state: TrackerState = NoEntry()
        self._subscribers: list[EntryCallback] = []
        self._last_user_activity = self._clock.now()

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def current_entry(self) -> Optional[ActivityEntry]:
        if isinstance(self._state, NoEntry):
            return None
        return self._state.entry

    @property
    def pending_observation(self) -> Optional[PendingObservation]:
        if isinstance(self._state, OpenWithPending):
            return self._state.pending
        return None

    @property
    def last_user_activity(self) -> datetime:
        return self._last_user_activity

    def subscribe(self, callback: EntryCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: EntryCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def record_user_activity(self, at: Optional[datetime] = None) -> None:
        """Note keyboard/mouse input; an older timestamp never wins."""
        at = at or self._clock.now()
        if at > self._last_user_activity:
            self._last_user_activity = at

    def start(self) -> None:
        """Adopt the currently focused window as the first open entry."""
        if not isinstance(self._state, NoEntry):
            return
        sample = self._poll_sampler()
        if sample is None:
            return
        now = self._clock.now()
        app_name, window_title = sample
        self._state = Open(ActivityEntry(app_name, window_title, now))
        self.record_user_activity(now)
        logger.info("Tracking started with %s (%s)", app_name, window_title)

    def observe(self, app_name: str, window_title: str, at: datetime) -> Optional[ActivityEntry]:
        """Feed one focus sample; return the entry it finalized, if any."""
        self.record_user_activity(at)
        return self._transition(app_name, window_title, at)

    def _transition(self, app_name: str, window_title: str, at: datetime) -> Optional[ActivityEntry]:
        state = self._state

        if isinstance(state, NoEntry):
            self._state = Open(ActivityEntry(app_name, window_title, at))
            return None

        current = state.entry
        if current.is_idle:
            finalized = self._close(current, at)
            self._state = Open(ActivityEntry(app_name, window_title, at))
            logger.debug("Idle ended after %.0fs", finalized.duration_seconds)
            self._publish(finalized)
            return finalized

        if current.matches(app_name, window_title):
            if isinstance(state, OpenWithPending):
                self._state = Open(current)
            return None

        pending = state.pending if isinstance(state, OpenWithPending) else None
        if pending is None or not pending.matches(app_name, window_title):
            self._state = OpenWithPending(
                current, PendingObservation(app_name, window_title, at)
            )
            return None

        if at - pending.first_seen < self.settings.debounce_window:
            return None

        finalized = self._close(current, at)
        self._state = Open(ActivityEntry(pending.app_name, pending.window_title, at))
        logger.debug(
            "Switch: %s (%.1fs) -> %s", current.app_name, finalized.duration_seconds, app_name
        )
        return self._emit_if_long_enough(finalized)

    def tick(self, at: Optional[datetime] = None) -> Optional[ActivityEntry]:
        """Run idle detection, then sample focus once."""
        at = at or self._clock.now()
        idle_start = self._last_user_activity + self.settings.idle_threshold

        if at >= idle_start:
            current = self.current_entry
            if current is None or current.is_idle:
                return None
            finalized = self._close(current, idle_start)
            self._state = Open(ActivityEntry.idle(finalized.end_time))
            logger.info(
                "Idle since %s; closed %s", finalized.end_time, current.app_name
            )
            return self._emit_if_long_enough(finalized)

        sample = self._poll_sampler()
        if sample is None:
            return None
        if self.samples_imply_activity:
            return self.observe(sample[0], sample[1], at)
        return self._transition(sample[0], sample[1], at)

    def finalize_current(self, at: Optional[datetime] = None) -> Optional[ActivityEntry]:
        """Close the open entry, e.g. on shutdown, and reset the tracker."""
        current = self.current_entry
        if current is None:
            return None
        at = at or self._clock.now()
        finalized = self._close(current, at)
        self._state = NoEntry()
        if finalized.is_idle:
            self._publish(finalized)
            return finalized
        return self._emit_if_long_enough(finalized)

    def _poll_sampler(self) -> Optional[tuple[str, str]]:
        try:
            return self._sampler.poll()
        except Exception:
            logger.exception("Focus sampler failed; skipping this tick.")
            return None

    @staticmethod
    def _close(entry: ActivityEntry, at: datetime) -> ActivityEntry:
        return entry.closed(max(at, entry.start_time))

    def _emit_if_long_enough(self, entry: ActivityEntry) -> Optional[ActivityEntry]:
        if entry.end_time - entry.start_time < self.settings.min_entry_duration:
            logger.debug(
                "Dropped %s entry shorter than %s", entry.app_name, self.settings.min_entry_duration
            )
            return None
        self._publish(entry)
        return entry

    def _publish(self, entry: ActivityEntry) -> None:
        for callback in list(self._subscribers):
            try:
                callback(entry)
            except Exception:
                logger.exception("Finalized-entry subscriber %r failed.", callback)
