# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Diagnostics event log."""

from .log import DiagnosticsLog

__all__ = ["DiagnosticsLog"]
