"""Tests for the bounded diagnostics log."""

from __future__ import annotations

from datetime import timedelta

import pytest

from usage_monitor.core.types import DiagnosticsEntry, DiagnosticsEventType, ProviderIdentity
from usage_monitor.diagnostics import DiagnosticsLog


def test_capacity_evicts_oldest_first() -> None:
    """Appending past capacity drops the oldest entries."""
    log = DiagnosticsLog(capacity=3)
    for index in range(5):
        log.log(DiagnosticsEntry(event_type=DiagnosticsEventType.FETCH_ATTEMPT, message=str(index)))

    assert len(log) == 3
    assert [entry.message for entry in log.get_entries()] == ["2", "3", "4"]


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DiagnosticsLog(capacity=0)


def test_get_entries_returns_a_copy() -> None:
    log = DiagnosticsLog()
    log.log_refresh_started()
    entries = log.get_entries()
    entries.clear()

    assert len(log) == 1


def test_clear() -> None:
    log = DiagnosticsLog()
    log.log_refresh_started()
    log.log_refresh_completed(timedelta(seconds=1))
    log.clear()

    assert log.get_entries() == []


def test_convenience_emitters_fill_fields() -> None:
    """Emitters record provider, source and the standard messages."""
    log = DiagnosticsLog()
    log.log_attempt(ProviderIdentity.CODEX, "oauth")
    log.log_success(ProviderIdentity.CODEX, "oauth", timedelta(milliseconds=250))
    log.log_failure(ProviderIdentity.CLAUDE, "web", "Claude usage failed (500).")

    attempt, success, failure = log.get_entries()
    assert attempt.event_type == DiagnosticsEventType.FETCH_ATTEMPT
    assert attempt.message == "Attempting oauth fetch..."
    assert attempt.source_label == "oauth"
    assert success.message == "Successfully fetched via oauth"
    assert success.duration == timedelta(milliseconds=250)
    assert failure.provider == ProviderIdentity.CLAUDE
    assert failure.source_label == "web"
    assert failure.message == "Claude usage failed (500)."


def test_observers_and_unsubscribe() -> None:
    """Observers see every new entry until they unsubscribe."""
    log = DiagnosticsLog()
    seen: list[DiagnosticsEntry] = []
    unsubscribe = log.subscribe(seen.append)

    log.log_refresh_started()
    unsubscribe()
    log.log_refresh_completed()

    assert [entry.event_type for entry in seen] == [DiagnosticsEventType.REFRESH_STARTED]


def test_failing_observer_does_not_break_logging() -> None:
    log = DiagnosticsLog()
    seen: list[DiagnosticsEntry] = []

    def broken(entry: DiagnosticsEntry) -> None:
        raise RuntimeError("boom")

    log.subscribe(broken)
    log.subscribe(seen.append)
    log.log_refresh_started()

    assert len(log) == 1
    assert len(seen) == 1
