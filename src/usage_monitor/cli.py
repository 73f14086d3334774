# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""CLI entrypoints for the usage monitor."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from .core.config import SettingsStore, normalize_log_roots
from .core.types import AggregateSummary, AppSettings, utc_now
from .diagnostics import DiagnosticsLog
from .logs import CacheStore, LogScanner
from .monitor import UsageMonitor
from .render import render_diagnostics, render_summary
from .service import UsageAcquisitionService

LOGGER = logging.getLogger(__name__)

TYPER_APP = typer.Typer(help="Provider usage monitor for Codex and Claude accounts.")


@TYPER_APP.callback()
def main() -> None:
    """Root CLI callback."""


async def _fetch_once(
    store: SettingsStore, settings: AppSettings, diagnostics: DiagnosticsLog
) -> AggregateSummary:
    scanner = LogScanner(CacheStore(store.cache_path))
    async with UsageAcquisitionService(diagnostics=diagnostics) as service:
        local_usage, snapshots = await asyncio.gather(
            asyncio.to_thread(scanner.scan, normalize_log_roots(settings.log_roots)),
            service.fetch(settings),
        )
    return AggregateSummary(
        snapshots=tuple(snapshots), last_updated=utc_now(), local_usage=local_usage
    )


async def _watch(
    store: SettingsStore,
    diagnostics: DiagnosticsLog,
    console: Console,
    show_diagnostics: bool,
    cycles: int,
) -> None:
    done = asyncio.Event()
    published = 0

    def on_summary(summary: AggregateSummary) -> None:
        nonlocal published
        render_summary(summary, console)
        if show_diagnostics:
            render_diagnostics(diagnostics.get_entries(), console)
            diagnostics.clear()
        published += 1
        if cycles and published >= cycles:
            done.set()

    async with UsageAcquisitionService(diagnostics=diagnostics) as service:
        monitor = UsageMonitor(service, settings_store=store, diagnostics=diagnostics)
        monitor.subscribe(on_summary)
        await monitor.start()
        try:
            await done.wait()
        finally:
            await monitor.stop()


@TYPER_APP.command("once")
def once_command(
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        help="Settings JSON file. Defaults to $USAGE_MONITOR_SETTINGS or ~/.config/usage-monitor/settings.json.",
    ),
    show_diagnostics: bool = typer.Option(
        False, "--diagnostics", "-d", help="Print the diagnostics log after the table."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug-level logging."),
) -> None:
    """Fetch usage for every enabled provider once and print it."""
    _configure_logging(verbose)
    store = SettingsStore(settings_path)
    diagnostics = DiagnosticsLog()
    console = Console()

    summary = asyncio.run(_fetch_once(store, store.load(), diagnostics))
    render_summary(summary, console)
    if show_diagnostics:
        render_diagnostics(diagnostics.get_entries(), console)


@TYPER_APP.command("watch")
def watch_command(
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        help="Settings JSON file. Defaults to $USAGE_MONITOR_SETTINGS or ~/.config/usage-monitor/settings.json.",
    ),
    show_diagnostics: bool = typer.Option(
        False, "--diagnostics", "-d", help="Print diagnostics after every refresh."
    ),
    cycles: int = typer.Option(
        0, "--cycles", min=0, help="Stop after this many refresh cycles (0 runs until interrupted)."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug-level logging."),
) -> None:
    """Refresh on the configured interval and print every new summary."""
    _configure_logging(verbose)
    store = SettingsStore(settings_path)
    console = Console()

    try:
        asyncio.run(_watch(store, DiagnosticsLog(), console, show_diagnostics, cycles))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted, stopping.")


def _configure_logging(verbose: bool) -> None:
    """Initialize default logging for CLI usage."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="[%(asctime)s][%(levelname)s][%(name)s] %(message)s",
    )


def module_cli_entry_point():
    TYPER_APP()
