"""Cache commands -- export, inspect and clear the nomenclature cache.

Provides the ``econt cache`` sub-command group.  All three commands operate
on the cache configured for the active client (``cache.enabled``,
``cache.directory``, ``cache.ttl_ms``); ``export`` enables it implicitly.
"""

from __future__ import annotations

import signal
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

import typer

from econt.commands import open_client
from econt.models import CacheReport
from econt.output import OutputFormat, format_response, get_output, info, print_table, progress, success


cache_app = typer.Typer(no_args_is_help=True)


def _format_ms(epoch_ms: Optional[int]) -> str:
    if epoch_ms is None:
        return "-"
    moment = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S UTC")


def _format_age(age_ms: Optional[int]) -> str:
    if age_ms is None:
        return "-"
    seconds = age_ms // 1000
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h{minutes:02d}m"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


@contextmanager
def _cancel_on_interrupt() -> Iterator[threading.Event]:
    """Turn Ctrl-C into a cancel request for the duration of the block.

    The export checks the event between steps, so an interrupt stops it
    at the next step boundary with the export status recorded.
    """
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


@cache_app.command("export")
def cache_export(ctx: typer.Context) -> None:
    """Download every nomenclature dataset into the local cache.

    Replaces the cache contents with countries, cities, offices and the
    streets of every city.  Press Ctrl-C to stop after the current step.

    Example::

        econt cache export
        ECONT_CACHE_DIR=./cache econt cache export
    """
    def _on_step(step: str, index: int, total: int) -> None:
        progress(f"[{index}/{total}] Exporting {step}...")

    with open_client(ctx, cache={"enabled": True}) as client:
        with _cancel_on_interrupt() as cancel:
            status = client.export_all_data(cancel=cancel, progress=_on_step)

    success(f"Export complete: {', '.join(status.completed_steps)}")


@cache_app.command("status")
def cache_status(ctx: typer.Context) -> None:
    """Show the cached keys, their age and the export state.

    Never contacts the API.

    Example::

        econt cache status
        econt --json cache status
    """
    with open_client(ctx) as client:
        report: CacheReport = client.get_cache_status()

    if get_output().format == OutputFormat.JSON:
        format_response(report.model_dump(mode="json"))
        return

    if not report.enabled:
        info("Cache is disabled. Enable it with ECONT_CACHE_ENABLED=1.")
        return

    info(f"Cache location: {report.location}")
    info(f"Export: {report.export.state.value}")
    if report.export.failed_step:
        info(f"Failed step: {report.export.failed_step}")

    rows = []
    for entry in report.entries:
        if entry.corrupt:
            state = "corrupt"
        elif entry.expired:
            state = "expired"
        else:
            state = "fresh"
        rows.append([
            entry.key,
            state,
            str(entry.record_count),
            _format_ms(entry.fetched_at),
            _format_age(entry.age_ms),
            _format_ms(entry.expires_at),
        ])
    if not rows:
        info("Cache is empty.")
        return
    print_table(
        ["Key", "State", "Records", "Fetched", "Age", "Expires"],
        rows,
        title="Nomenclature cache",
    )


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    key: Optional[str] = typer.Argument(
        None, help="Cache key to clear (e.g. 'offices', 'streets:41'). Omit to clear all."
    ),
) -> None:
    """Delete one cache entry, or the whole cache.

    Example::

        econt cache clear
        econt cache clear streets:41
    """
    with open_client(ctx) as client:
        if not client.cache.enabled:
            info("Cache is disabled; nothing to clear.")
            return
        client.clear_cache(key)

    if key is None:
        success("Cache cleared.")
    else:
        success(f"Cleared {key}.")
