"""Tests for reset-time formatting and usage window values."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from usage_monitor.core.types import UsageWindow
from usage_monitor.usage.windows import format_reset_description

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(minutes=150), "Resets in 2h 30m"),
        (timedelta(minutes=120), "Resets in 2h"),
        (timedelta(minutes=10), "Resets in 10m"),
        (timedelta(seconds=30), "Resets soon"),
        (timedelta(seconds=0), "Reset time passed"),
        (timedelta(minutes=-5), "Reset time passed"),
        (timedelta(days=2, minutes=5), "Resets in 48h 5m"),
    ],
)
def test_format_reset_description(delta: timedelta, expected: str) -> None:
    """Formatter should bucket the remaining time into the documented strings."""
    assert format_reset_description(NOW + delta, now=NOW) == expected


def test_format_reset_description_none() -> None:
    """No reset time means no description."""
    assert format_reset_description(None, now=NOW) is None


def test_naive_datetimes_are_treated_as_utc() -> None:
    """Naive reset times should compare as UTC."""
    naive_reset = (NOW + timedelta(minutes=90)).replace(tzinfo=None)
    assert format_reset_description(naive_reset, now=NOW) == "Resets in 1h 30m"


def test_window_description_is_derived_from_reset_time() -> None:
    """A window's reset description always follows its reset timestamp."""
    future = UsageWindow(label="Session", used_percent=40, resets_at=datetime.now(timezone.utc) + timedelta(hours=3, seconds=30))
    past = UsageWindow(label="Session", used_percent=40, resets_at=datetime.now(timezone.utc) - timedelta(minutes=1))
    unknown = UsageWindow(label="Weekly", used_percent=10)

    assert future.reset_description == "Resets in 3h"
    assert past.reset_description == "Reset time passed"
    assert unknown.reset_description is None
