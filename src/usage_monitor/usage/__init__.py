# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage window helpers.

Kept free of imports from the core package so core types can depend on it.
"""

from .windows import SESSION_LABEL, WEEKLY_LABEL, format_reset_description

__all__ = [
    "SESSION_LABEL",
    "WEEKLY_LABEL",
    "format_reset_description",
]
