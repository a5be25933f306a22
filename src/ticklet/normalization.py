"""Utilities to normalize window titles before they are tracked.

Titles that only differ by a browser suffix or an unread counter would
otherwise look like focus changes to the tracker and split one activity into
several short entries.
"""

from __future__ import annotations

import re
from typing import Optional

# Keys are lower-cased application names as reported by Windows (process
# image) and macOS (System Events process name).
_BROWSER_SUFFIXES: dict[str, tuple[str, ...]] = {
    "msedge.exe": (" - Microsoft Edge",),
    "microsoft edge": (" - Microsoft Edge",),
    "chrome.exe": (" - Google Chrome",),
    "google chrome": (" - Google Chrome",),
    "firefox.exe": (" - Mozilla Firefox", " — Mozilla Firefox"),
    "firefox": (" - Mozilla Firefox", " — Mozilla Firefox"),
    "brave.exe": (" - Brave",),
    "brave browser": (" - Brave",),
    "opera.exe": (" - Opera",),
}

_EXTRA_TAB_COUNT_PATTERN = re.compile(r"\s+and\s+\d+\s+more\s+pages?", re.IGNORECASE)
_UNREAD_COUNT_PATTERN = re.compile(r"^\(\d+\+?\)\s+")


def normalize_window_title(app_name: Optional[str], window_title: Optional[str]) -> Optional[str]:
    if not window_title:
        return None
    normalized = window_title.strip()
    if not app_name:
        return normalized or None

    for suffix in _BROWSER_SUFFIXES.get(app_name.lower(), ()):
        if normalized.endswith(suffix):
            normalized = normalized[: -len(suffix)].rstrip(" -")
            break

    normalized = _UNREAD_COUNT_PATTERN.sub("", normalized)
    normalized = _EXTRA_TAB_COUNT_PATTERN.sub("", normalized).strip(" -|")
    normalized = re.sub(r"\s{2,}", " ", normalized).strip()
    return normalized or None
