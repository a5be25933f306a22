"""Time sources for the tracker."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in naive local time."""

    def now(self) -> datetime:
        return datetime.now()
