# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Rich rendering helpers for usage summaries and diagnostics."""

from typing import Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core.types import (
    AggregateSummary,
    DiagnosticsEntry,
    DiagnosticsEventType,
    LocalUsageSummary,
    UsageWindow,
)

TABLE_ROW_STYLES = ["white", "yellow"]

_EVENT_STYLES = {
    DiagnosticsEventType.FETCH_SUCCESS: "green",
    DiagnosticsEventType.FETCH_FAILURE: "red",
}


def format_window(window: Optional[UsageWindow]) -> str:
    """One table cell for a usage window."""
    if window is None:
        return "-"
    used = "?" if window.used_percent is None else f"{window.used_percent:.0f}% used"
    reset = window.reset_description
    return f"{used}\n{reset}" if reset else used


def render_summary(summary: AggregateSummary, console: Console) -> None:
    """Render one row per provider snapshot, then local log usage if scanned."""
    if summary.snapshots:
        render_snapshots(summary, console)
    else:
        console.print("No providers enabled.")
    if summary.local_usage is not None:
        render_local_usage(summary.local_usage, console)


def render_snapshots(summary: AggregateSummary, console: Console) -> None:
    title = "Provider Usage"
    if summary.last_updated is not None:
        title += f" ({summary.last_updated.astimezone():%Y-%m-%d %H:%M:%S})"

    table = Table(title=title, title_justify="left")
    table.add_column("Provider", justify="left")
    table.add_column("Source", justify="left")
    table.add_column("Account", justify="left")
    table.add_column("Session", justify="right")
    table.add_column("Weekly", justify="right")
    table.add_column("Credits / Error", justify="left")

    for index, snapshot in enumerate(summary.snapshots):
        account = " / ".join(
            part for part in (snapshot.account_email, snapshot.account_plan) if part
        )
        details = [escape(snapshot.credits_text)] if snapshot.credits_text else []
        if snapshot.error:
            details.append(f"[red]{escape(snapshot.error)}[/red]")
        table.add_row(
            snapshot.provider.display_name,
            snapshot.source_label,
            escape(account) or "-",
            format_window(snapshot.primary),
            format_window(snapshot.secondary),
            "\n".join(details) or "-",
            style=TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)],
        )

    console.print(table)


def render_diagnostics(entries: Iterable[DiagnosticsEntry], console: Console) -> None:
    """Render the diagnostics log, oldest first."""
    table = Table(title="Diagnostics", title_justify="left")
    table.add_column("Time", justify="left")
    table.add_column("Provider", justify="left")
    table.add_column("Event", justify="left")
    table.add_column("Source", justify="left")
    table.add_column("Message", justify="left")
    table.add_column("Duration", justify="right")

    for entry in entries:
        duration = (
            f"{entry.duration.total_seconds() * 1000:.0f} ms"
            if entry.duration is not None
            else ""
        )
        table.add_row(
            f"{entry.timestamp.astimezone():%H:%M:%S}",
            entry.provider.display_name if entry.provider else "",
            entry.event_type.value,
            entry.source_label or "",
            escape(entry.message),
            duration,
            style=_EVENT_STYLES.get(entry.event_type),
        )

    console.print(table)


def render_local_usage(local_usage: LocalUsageSummary, console: Console) -> None:
    """Render daily token totals from local logs and the latest session."""
    if not local_usage.daily_totals:
        console.print("No local token usage found.")
    else:
        table = Table(title="Local Token Usage", show_footer=True, title_justify="left")
        table.add_column("Date", footer="Total", justify="left")
        table.add_column("Input Tokens", footer_style="bold", justify="right")
        table.add_column("Output Tokens", footer_style="bold", justify="right")
        table.add_column("Total Tokens", footer_style="bold", justify="right")

        input_total = output_total = 0
        for index, daily in enumerate(local_usage.daily_totals):
            input_total += daily.input_tokens
            output_total += daily.output_tokens
            table.add_row(
                daily.day.isoformat(),
                f"{daily.input_tokens:,}",
                f"{daily.output_tokens:,}",
                f"{daily.total_tokens:,}",
                style=TABLE_ROW_STYLES[index % len(TABLE_ROW_STYLES)],
            )

        table.columns[1].footer = f"{input_total:,}"
        table.columns[2].footer = f"{output_total:,}"
        table.columns[3].footer = f"{local_usage.total_tokens:,}"
        console.print(table)

    session = local_usage.last_session
    if session is not None:
        provider = session.provider.display_name if session.provider else "Unknown"
        console.print(
            f"Last session: {provider} {escape(session.session_id or '-')}, "
            f"{session.total_tokens:,} tokens, "
            f"last active {session.last_activity.astimezone():%Y-%m-%d %H:%M:%S}"
        )
    for error in local_usage.scan_errors:
        console.print(f"[red]{escape(error)}[/red]")
