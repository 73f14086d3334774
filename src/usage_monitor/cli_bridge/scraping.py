# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Text scraping for interactive CLI output.
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence

from ..core.types import UsageWindow
from ..usage.windows import SESSION_LABEL, WEEKLY_LABEL

_ANSI_PATTERN = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"  # CSI
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC
    r"|\x1b[@-Z\\-_]"
)
_GENERIC_PERCENT = re.compile(r"(\d{1,3})%\s*(used|remaining|left)", re.IGNORECASE)
_REMAINING_SUFFIX = re.compile(r"\s*(remaining|left)", re.IGNORECASE)


@dataclass(frozen=True)
class CliUsage:
    """Usage read through a CLI bridge."""

    source_label: str
    primary: Optional[UsageWindow] = None
    secondary: Optional[UsageWindow] = None
    credits_text: Optional[str] = None
    account_email: Optional[str] = None
    account_plan: Optional[str] = None

    @property
    def has_usage(self) -> bool:
        return (
            self.primary is not None
            or self.secondary is not None
            or self.credits_text is not None
        )


def strip_ansi(text: str) -> str:
    return _ANSI_PATTERN.sub("", text).replace("\r", "")


def _as_used(value: int, suffix: str) -> float:
    percent = float(min(value, 100))
    if suffix.lower() in ("remaining", "left"):
        return 100.0 - percent
    return percent


def extract_percent(text: str, labels: Sequence[str]) -> Optional[float]:
    """
    Find a used percentage near one of the given section labels.

    Labels are tried in order; the first number followed by '%' after a label
    wins. "NN% left" / "NN% remaining" is converted to a used percentage.
    When no label matches, a generic "NN% used|remaining|left" is used.
    """
    for label in labels:
        pattern = re.compile(rf"{re.escape(label)}[^\d%]*(\d{{1,3}})%", re.IGNORECASE)
        match = pattern.search(text)
        if match:
            suffix = _REMAINING_SUFFIX.match(text, match.end())
            return _as_used(int(match.group(1)), suffix.group(1) if suffix else "used")

    generic = _GENERIC_PERCENT.search(text)
    if generic:
        return _as_used(int(generic.group(1)), generic.group(2))
    return None


def scrape_usage(
    output: Optional[str],
    source_label: str,
    session_labels: Sequence[str],
    weekly_labels: Sequence[str],
) -> Optional[CliUsage]:
    """
    Build usage from interactive output.

    Returns:
        CliUsage, or None when the output holds no percentages at all
    """
    if not output:
        return None
    text = strip_ansi(output)

    session = extract_percent(text, session_labels)
    weekly = extract_percent(text, weekly_labels)
    if session is None and weekly is None:
        return None

    return CliUsage(
        source_label=source_label,
        primary=(
            UsageWindow(label=SESSION_LABEL, used_percent=session)
            if session is not None
            else None
        ),
        secondary=(
            UsageWindow(label=WEEKLY_LABEL, used_percent=weekly)
            if weekly is not None
            else None
        ),
    )
