"""Simple reporting utilities for CLI output."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from .models import ActivityEntry
from .store import CSVLogStore


class SummaryPrinter:
    """Render human-readable views of a day's log in the console."""

    def __init__(self, store: CSVLogStore) -> None:
        self.store = store

    def print_entries(self, day: date) -> None:
        entries = self.store.read(day)
        if not entries:
            print("No activity recorded for the selected day.")
            return

        print(f"Entries for {day.isoformat()} ({self.store.path_for(day)})")
        print("-" * 72)
        for entry in entries:
            start = entry.start_time.strftime("%H:%M:%S")
            end = entry.end_time.strftime("%H:%M:%S") if entry.end_time else "--:--:--"
            label = entry.window_title or "(untitled)"
            print(
                f"{start}-{end} {format_duration(entry.duration_seconds or 0)} "
                f"{entry.app_name[:20]:<20} {label[:30]}"
            )

    def print_daily_summary(self, day: date) -> None:
        entries = self.store.read(day)
        if not entries:
            print("No activity recorded for the selected day.")
            return

        total_active = sum(_seconds(e) for e in entries if not e.is_idle)
        total_idle = sum(_seconds(e) for e in entries if e.is_idle)

        print(f"Summary for {day.isoformat()}")
        print("-" * 40)
        print(f"Active time: {format_duration(total_active)}")
        print(f"Idle time:   {format_duration(total_idle)}")
        print()

        top_apps = aggregate_by_app(entries)
        if top_apps:
            print("Top applications:")
            for app_name, seconds in top_apps[:5]:
                print(f"  {app_name:<30} {format_duration(seconds)}")

        top_windows = aggregate_top_windows(entries)
        if top_windows:
            print()
            print("Top windows / tabs:")
            for app_name, window, seconds in top_windows[:5]:
                label = window or "(untitled)"
                print(f"  {app_name[:12]:<12} {label[:45]:<45} {format_duration(seconds)}")


def _seconds(entry: ActivityEntry) -> float:
    return entry.duration_seconds or 0.0


def aggregate_by_app(entries: Iterable[ActivityEntry]) -> list[tuple[str, float]]:
    totals: defaultdict[str, float] = defaultdict(float)
    for entry in entries:
        if entry.is_idle:
            continue
        totals[entry.app_name] += _seconds(entry)
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def aggregate_top_windows(entries: Iterable[ActivityEntry]) -> list[tuple[str, str, float]]:
    totals: defaultdict[tuple[str, str], float] = defaultdict(float)
    for entry in entries:
        if entry.is_idle:
            continue
        totals[(entry.app_name, entry.window_title)] += _seconds(entry)
    sorted_items = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [(app_name, window, seconds) for (app_name, window), seconds in sorted_items]


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
