"""Tests for Typer CLI entrypoints."""

from __future__ import annotations

import json
from datetime import date, datetime, timezone
from pathlib import Path

from rich.console import Console
from typer.testing import CliRunner

from usage_monitor.cli import TYPER_APP
from usage_monitor.core.types import (
    AggregateSummary,
    DailyUsage,
    LocalUsageSummary,
    ProviderIdentity,
    ProviderUsageSnapshot,
    SessionUsage,
    UsageWindow,
    utc_now,
)
from usage_monitor.render import format_window, render_summary


def _write_settings(path: Path, providers: dict[str, dict]) -> Path:
    path.write_text(json.dumps({"refresh_minutes": 5, "providers": providers}), encoding="utf-8")
    return path


def test_once_with_all_providers_disabled(tmp_path: Path) -> None:
    """CLI once should say so when nothing is enabled."""
    settings_path = _write_settings(
        tmp_path / "settings.json",
        {"codex": {"enabled": False}, "claude": {"enabled": False}},
    )

    result = CliRunner().invoke(TYPER_APP, ["once", "--settings", str(settings_path)])

    assert result.exit_code == 0
    assert "No providers enabled." in result.stdout


def test_once_prints_errors_and_diagnostics(tmp_path: Path) -> None:
    """Provider errors are shown in the table and the command still succeeds."""
    settings_path = _write_settings(
        tmp_path / "settings.json",
        {"codex": {"enabled": True, "source_mode": "oauth"}, "claude": {"enabled": False}},
    )

    result = CliRunner().invoke(
        TYPER_APP,
        ["once", "--settings", str(settings_path), "--diagnostics"],
        env={"COLUMNS": "200"},
    )

    assert result.exit_code == 0
    assert "Provider Usage" in result.stdout
    assert "No Codex usage sources available." in result.stdout
    assert "Diagnostics" in result.stdout
    assert "fetch_attempt" in result.stdout
    assert "No data from oauth" in result.stdout


def test_environment_overrides_apply_to_cli(tmp_path: Path) -> None:
    settings_path = _write_settings(tmp_path / "settings.json", {"codex": {"enabled": True}})

    result = CliRunner().invoke(
        TYPER_APP,
        ["once", "--settings", str(settings_path)],
        env={"USAGE_MONITOR_CODEX_ENABLED": "0", "USAGE_MONITOR_CLAUDE_ENABLED": "no"},
    )

    assert result.exit_code == 0
    assert "No providers enabled." in result.stdout


def test_watch_stops_after_requested_cycles(tmp_path: Path) -> None:
    settings_path = _write_settings(
        tmp_path / "settings.json",
        {"codex": {"enabled": False}, "claude": {"enabled": False}},
    )

    result = CliRunner().invoke(TYPER_APP, ["watch", "--settings", str(settings_path), "--cycles", "1"])

    assert result.exit_code == 0
    assert result.stdout.count("No providers enabled.") == 1


def test_render_summary_row() -> None:
    """Rendered rows show account, windows and credits."""
    console = Console(record=True, width=200)
    summary = AggregateSummary(
        snapshots=(
            ProviderUsageSnapshot(
                provider=ProviderIdentity.CODEX,
                source_label="oauth",
                account_email="dev@example.com",
                account_plan="plus",
                primary=UsageWindow(label="Session", used_percent=42),
                credits_text="Credits: [unlimited]",
            ),
        )
    )

    render_summary(summary, console)
    text = console.export_text()

    assert "Codex" in text
    assert "dev@example.com / plus" in text
    assert "42% used" in text
    assert "Credits: [unlimited]" in text
    assert format_window(None) == "-"


def test_render_local_usage_table() -> None:
    console = Console(record=True, width=200)
    summary = AggregateSummary(
        local_usage=LocalUsageSummary(
            daily_totals=(
                DailyUsage(day=date(2026, 10, 17), input_tokens=1200, output_tokens=300, total_tokens=1500),
                DailyUsage(day=date(2026, 10, 18), input_tokens=10, output_tokens=2, total_tokens=12),
            ),
            last_session=SessionUsage(
                last_activity=datetime(2026, 10, 18, 9, tzinfo=timezone.utc),
                total_tokens=12,
                provider=ProviderIdentity.CODEX,
                session_id="rollout-abc",
            ),
            scan_errors=("/logs/broken.jsonl: denied",),
        )
    )

    render_summary(summary, console)
    text = console.export_text()

    assert "No providers enabled." in text
    assert "Local Token Usage" in text
    assert "2026-10-17" in text
    assert "1,200" in text
    assert "1,512" in text
    assert "Last session: Codex rollout-abc, 12 tokens" in text
    assert "/logs/broken.jsonl: denied" in text


def test_once_reports_local_log_usage(tmp_path: Path, codex_home: Path) -> None:
    settings_path = _write_settings(
        tmp_path / "settings.json",
        {"codex": {"enabled": False}, "claude": {"enabled": False}},
    )
    sessions = codex_home / "sessions"
    sessions.mkdir()
    line = {"timestamp": utc_now().isoformat(), "usage": {"input_tokens": 1000, "output_tokens": 234}}
    (sessions / "rollout-1.jsonl").write_text(json.dumps(line) + "\n", encoding="utf-8")

    result = CliRunner().invoke(TYPER_APP, ["once", "--settings", str(settings_path)], env={"COLUMNS": "200"})

    assert result.exit_code == 0
    assert "Local Token Usage" in result.stdout
    assert "1,234" in result.stdout
    assert (tmp_path / "scan-cache.json").exists()
