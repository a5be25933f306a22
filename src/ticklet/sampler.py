"""Focus samplers and input-idle probes for the supported platforms."""

from __future__ import annotations

import ctypes
import logging
import re
import subprocess  # nosec B404 - osascript/ioreg are the macOS query interfaces
import sys
from typing import Optional, Protocol

import psutil

from .normalization import normalize_window_title

logger = logging.getLogger(__name__)

FocusSample = tuple[str, str]


class FocusSampler(Protocol):
    def poll(self) -> Optional[FocusSample]: ...


class InputIdleProbe(Protocol):
    def seconds_since_input(self) -> Optional[float]: ...


class NullSampler:
    """Sampler for platforms without a focus query; never yields a sample."""

    def poll(self) -> Optional[FocusSample]:
        return None


class NullIdleProbe:
    def seconds_since_input(self) -> Optional[float]:
        return None


class NormalizingSampler:
    """Cleans window titles returned by another sampler."""

    def __init__(self, inner: FocusSampler) -> None:
        self._inner = inner

    def poll(self) -> Optional[FocusSample]:
        sample = self._inner.poll()
        if sample is None:
            return None
        app_name, window_title = sample
        return app_name, normalize_window_title(app_name, window_title) or ""


class WindowsFocusSampler:
    """Retrieves the foreground window title and process name."""

    def __init__(self) -> None:
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]

    def poll(self) -> Optional[FocusSample]:
        from ctypes import wintypes

        hwnd = self._user32.GetForegroundWindow()
        if not hwnd:
            return None

        length = self._user32.GetWindowTextLengthW(hwnd)
        buffer = ctypes.create_unicode_buffer(length + 1)
        self._user32.GetWindowTextW(hwnd, buffer, length + 1)
        window_title = buffer.value.strip()

        pid = wintypes.DWORD()
        self._user32.GetWindowThreadProcessId(hwnd, ctypes.byref(pid))
        if not pid.value:
            return None
        try:
            process_name = psutil.Process(pid.value).name()
        except (psutil.Error, ProcessLookupError):
            return None
        return process_name, window_title


class WindowsIdleProbe:
    """Detects time since the last keyboard/mouse input using Win32 APIs."""

    def __init__(self) -> None:
        from ctypes import wintypes

        class LASTINPUTINFO(ctypes.Structure):
            _fields_ = [("cbSize", wintypes.UINT), ("dwTime", wintypes.DWORD)]

        self._info_type = LASTINPUTINFO
        self._user32 = ctypes.windll.user32  # type: ignore[attr-defined]
        self._kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]

    def seconds_since_input(self) -> Optional[float]:
        last_input = self._info_type()
        last_input.cbSize = ctypes.sizeof(last_input)
        if not self._user32.GetLastInputInfo(ctypes.byref(last_input)):
            logger.warning("GetLastInputInfo failed; input activity unknown.")
            return None
        elapsed = self._kernel32.GetTickCount64() - last_input.dwTime
        return elapsed / 1000.0


_FRONTMOST_SCRIPT = """
tell application "System Events"
    set frontProc to first application process whose frontmost is true
    set appName to name of frontProc
    set winTitle to ""
    try
        set winTitle to name of front window of frontProc
    end try
end tell
return appName & linefeed & winTitle
"""


class MacFocusSampler:
    """Queries the frontmost application and window title via System Events."""

    def __init__(self, timeout: float = 0.5) -> None:
        self.timeout = timeout

    def poll(self) -> Optional[FocusSample]:
        try:
            result = subprocess.run(  # nosec B603 B607
                ["osascript", "-e", _FRONTMOST_SCRIPT],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.debug("osascript timed out after %.1fs", self.timeout)
            return None
        except OSError:
            logger.exception("Failed to run osascript.")
            return None

        if result.returncode != 0:
            logger.debug("osascript failed: %s", result.stderr.strip())
            return None
        app_name, _, window_title = result.stdout.rstrip("\n").partition("\n")
        app_name = app_name.strip()
        if not app_name:
            return None
        return app_name, window_title.strip()


_HID_IDLE_PATTERN = re.compile(r'"HIDIdleTime"\s*=\s*(\d+)')


class MacIdleProbe:
    """Reads HIDIdleTime (nanoseconds) from the IOHIDSystem registry entry."""

    def __init__(self, timeout: float = 0.5) -> None:
        self.timeout = timeout

    def seconds_since_input(self) -> Optional[float]:
        try:
            result = subprocess.run(  # nosec B603 B607
                ["ioreg", "-c", "IOHIDSystem", "-d", "4"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError):
            logger.debug("ioreg query failed; input activity unknown.")
            return None
        return parse_hid_idle_seconds(result.stdout)


def parse_hid_idle_seconds(ioreg_output: str) -> Optional[float]:
    match = _HID_IDLE_PATTERN.search(ioreg_output)
    if not match:
        return None
    return int(match.group(1)) / 1_000_000_000


def default_sampler() -> FocusSampler:
    """Return the title-normalizing sampler for the running platform."""
    if sys.platform == "win32":
        return NormalizingSampler(WindowsFocusSampler())
    if sys.platform == "darwin":
        return NormalizingSampler(MacFocusSampler())
    logger.warning("No focus sampler available for %s; nothing will be tracked.", sys.platform)
    return NullSampler()


def default_idle_probe() -> InputIdleProbe:
    if sys.platform == "win32":
        return WindowsIdleProbe()
    if sys.platform == "darwin":
        return MacIdleProbe()
    return NullIdleProbe()
