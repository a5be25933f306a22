"""Periodic driver for the activity tracker."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Optional

from .clock import Clock, SystemClock
from .manager import ActivityManager
from .models import ActivityEntry
from .sampler import InputIdleProbe, NullIdleProbe

logger = logging.getLogger(__name__)


class ActivityCollector:
    """Ticks the tracker at the configured poll interval until stopped.

    Every tick runs on the thread that called ``run_forever`` or
    ``run_until_stopped``, which makes that thread the tracker's only writer.
    """

    def __init__(
        self,
        manager: ActivityManager,
        *,
        idle_probe: Optional[InputIdleProbe] = None,
        clock: Optional[Clock] = None,
        finalize_on_stop: bool = True,
    ) -> None:
        self.manager = manager
        self.tracker = manager.tracker
        self.settings = manager.tracker.settings
        self.finalize_on_stop = finalize_on_stop
        self._idle_probe = idle_probe or NullIdleProbe()
        self._clock = clock or SystemClock()
        self._wakeup = threading.Event()

    def run_forever(self) -> None:
        stop_event = threading.Event()
        try:
            self._run_loop(stop_event)
        except KeyboardInterrupt:
            logger.info("Collector interrupted; flushing entries.")
        finally:
            self._shutdown()

    def run_until_stopped(self, stop_event: threading.Event) -> None:
        """Run the collector until the provided event is set."""
        try:
            self._run_loop(stop_event)
        finally:
            self._shutdown()

    def sample_once(self) -> Optional[ActivityEntry]:
        now = self._clock.now()
        idle_seconds = self._idle_probe.seconds_since_input()
        if idle_seconds is not None:
            self.tracker.record_user_activity(now - timedelta(seconds=idle_seconds))
        else:
            # No input reading this tick; the poll itself counts as activity.
            self.tracker.record_user_activity(now)
        finalized = self.tracker.tick(now)
        if finalized:
            logger.debug(
                "Finalized %s / %s (%.0fs)",
                finalized.app_name,
                finalized.window_title,
                finalized.duration_seconds,
            )
        return finalized

    def set_poll_interval(self, seconds: float) -> None:
        """Change the cadence; a running loop picks it up immediately."""
        self.settings.poll_interval = timedelta(seconds=seconds)
        self._wakeup.set()

    def _run_loop(self, stop_event: threading.Event) -> None:
        logger.info(
            "Starting collector; polling every %.1fs", self.settings.poll_interval.total_seconds()
        )
        self.manager.start()
        while not stop_event.is_set():
            try:
                self.sample_once()
            except Exception:
                logger.exception("Error in tracking loop; continuing.")
            self._sleep(stop_event)

    def _sleep(self, stop_event: threading.Event) -> None:
        # Wait on the stop event, waking early if the interval changes.
        self._wakeup.clear()
        remaining = self.settings.poll_interval.total_seconds()
        step = 0.1
        while remaining > 0 and not stop_event.is_set() and not self._wakeup.is_set():
            stop_event.wait(min(step, remaining))
            remaining -= step

    def _shutdown(self) -> None:
        try:
            self.manager.stop(finalize=self.finalize_on_stop)
        finally:
            logger.info("Collector stopped.")
