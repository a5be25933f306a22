"""Command-line interface for Ticklet."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import typer

from .paths import get_log_path

app = typer.Typer(help="Track focused applications into per-day CSV logs.")

LOGS_DIR_OPTION = typer.Option(
    None,
    "--logs-dir",
    path_type=Path,
    envvar="TICKLET_LOG_DIR",
    help="Directory holding the per-day CSV logs.",
)
DATE_OPTION = typer.Option(
    None,
    "--date",
    help="Date (YYYY-MM-DD). Defaults to today.",
)


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    log_file: bool = typer.Option(
        False, "--log-file", help="Also write diagnostics to collector.log in the data directory."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if log_file:
        handler = logging.FileHandler(get_log_path(), encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logging.getLogger().addHandler(handler)


def _parse_day(value: Optional[str]) -> date:
    if not value:
        return datetime.now().date()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"Expected YYYY-MM-DD, got {value!r}", param_hint="--date")


def _open_store(logs_dir: Optional[Path]):
    from .store import CSVLogStore

    return CSVLogStore(logs_directory=logs_dir)


@app.command()
def collect(
    logs_dir: Optional[Path] = LOGS_DIR_OPTION,
    poll_seconds: float = typer.Option(
        1.0, "--interval", min=0.1, help="Sampling interval in seconds."
    ),
    debounce_seconds: float = typer.Option(
        3.0, "--debounce", min=0.0, help="Seconds a new focus must stay before it counts."
    ),
    min_entry_seconds: Optional[float] = typer.Option(
        None,
        "--min-duration",
        min=0.0,
        help="Shortest entry to keep, in seconds (defaults to the debounce window).",
    ),
    idle_seconds: float = typer.Option(
        300.0,
        "--idle-threshold",
        min=1.0,
        help="Seconds without input before time is logged as [IDLE].",
    ),
    finalize_on_exit: bool = typer.Option(
        True,
        "--finalize-on-exit/--no-finalize-on-exit",
        help="Log the entry still open when the collector stops.",
    ),
) -> None:
    """Run the collector until interrupted."""
    from .collector import ActivityCollector
    from .config import TrackerSettings
    from .manager import ActivityManager
    from .sampler import NullIdleProbe, default_idle_probe, default_sampler
    from .tracker import ActivityTracker

    settings = TrackerSettings.from_intervals(
        poll_seconds=poll_seconds,
        debounce_seconds=debounce_seconds,
        min_entry_seconds=min_entry_seconds,
        idle_seconds=idle_seconds,
    )
    idle_probe = default_idle_probe()
    tracker = ActivityTracker(
        settings,
        sampler=default_sampler(),
        samples_imply_activity=isinstance(idle_probe, NullIdleProbe),
    )
    store = _open_store(logs_dir)
    manager = ActivityManager(store, tracker)
    logging.getLogger(__name__).info("Writing logs to %s", store.logs_directory)
    collector = ActivityCollector(
        manager, idle_probe=idle_probe, finalize_on_stop=finalize_on_exit
    )
    collector.run_forever()


@app.command()
def show(
    date_: Optional[str] = DATE_OPTION,
    logs_dir: Optional[Path] = LOGS_DIR_OPTION,
) -> None:
    """List the entries logged for a day."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_open_store(logs_dir)).print_entries(_parse_day(date_))


@app.command()
def summary(
    date_: Optional[str] = DATE_OPTION,
    logs_dir: Optional[Path] = LOGS_DIR_OPTION,
) -> None:
    """Print a high-level summary for a specific day."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_open_store(logs_dir)).print_daily_summary(_parse_day(date_))


@app.command()
def merge(
    date_: Optional[str] = DATE_OPTION,
    logs_dir: Optional[Path] = LOGS_DIR_OPTION,
) -> None:
    """Sort a day's log and drop duplicate entries."""
    from .manager import ActivityManager
    from .tracker import ActivityTracker

    store = _open_store(logs_dir)
    day = _parse_day(date_)
    if not store.path_for(day).exists():
        typer.echo(f"No log for {day.isoformat()}.")
        raise typer.Exit(code=1)
    counts = ActivityManager(store, ActivityTracker()).merge_day(day)
    if counts is None:
        typer.echo(f"Could not merge {store.path_for(day)}; see the log for details.", err=True)
        raise typer.Exit(code=1)
    before, after = counts
    typer.echo(f"{store.path_for(day)}: {before} -> {after} entries")


@app.command()
def days(logs_dir: Optional[Path] = LOGS_DIR_OPTION) -> None:
    """List the days that have a log file."""
    for day in _open_store(logs_dir).days():
        typer.echo(day.isoformat())
