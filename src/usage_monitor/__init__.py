# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage monitor for account-based AI providers.

Periodically determines how much of each provider's rate-limited quota has
been used, through a per-provider fallback chain of OAuth API, web API and
CLI sources, and publishes the result as an immutable AggregateSummary
together with daily token totals scanned from local JSONL usage logs.
"""

from .core import (
    AggregateSummary,
    AppSettings,
    ConfigError,
    CookieSourceMode,
    DailyUsage,
    DiagnosticsEntry,
    DiagnosticsEventType,
    LocalUsageSummary,
    ProviderIdentity,
    ProviderSettings,
    ProviderUsageSnapshot,
    SessionUsage,
    SettingsStore,
    SourceMode,
    UsageMonitorError,
    UsageRecord,
    UsageWindow,
)
from .diagnostics import DiagnosticsLog
from .logs import CacheStore, LogChangeWatcher, LogScanner
from .providers import ProviderFetcher, create_default_fetchers
from .service import UsageAcquisitionService
from .monitor import UsageMonitor

__version__ = "0.1.0"

__all__ = [
    "AggregateSummary",
    "AppSettings",
    "ConfigError",
    "CookieSourceMode",
    "DailyUsage",
    "DiagnosticsEntry",
    "DiagnosticsEventType",
    "LocalUsageSummary",
    "ProviderIdentity",
    "ProviderSettings",
    "ProviderUsageSnapshot",
    "SessionUsage",
    "SettingsStore",
    "SourceMode",
    "UsageMonitorError",
    "UsageRecord",
    "UsageWindow",
    "DiagnosticsLog",
    "CacheStore",
    "LogChangeWatcher",
    "LogScanner",
    "ProviderFetcher",
    "create_default_fetchers",
    "UsageAcquisitionService",
    "UsageMonitor",
]
