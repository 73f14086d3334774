# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Reset-time formatting for usage windows.

Pure functions only; nothing here touches I/O or shared state.
"""

from datetime import datetime, timezone
from typing import Optional

# Canonical window labels used by every source
SESSION_LABEL = "Session"
WEEKLY_LABEL = "Weekly"


def format_reset_description(
    resets_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Describe how long until a usage window resets.

    Naive datetimes are treated as UTC.

    Args:
        resets_at: When the window resets, or None if unknown
        now: Reference time (defaults to the current UTC time)

    Returns:
        "Reset time passed", "Resets in {h}h {m}m", "Resets in {h}h",
        "Resets in {m}m", "Resets soon", or None when resets_at is None
    """
    if resets_at is None:
        return None

    if now is None:
        now = datetime.now(timezone.utc)
    if resets_at.tzinfo is None:
        resets_at = resets_at.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    remaining = (resets_at - now).total_seconds()
    if remaining <= 0:
        return "Reset time passed"

    total_minutes = int(remaining // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours >= 1:
        if minutes == 0:
            return f"Resets in {hours}h"
        return f"Resets in {hours}h {minutes}m"
    if total_minutes >= 1:
        return f"Resets in {total_minutes}m"
    return "Resets soon"
