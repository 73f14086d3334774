# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Core package for the usage monitor.

Provides shared infrastructure used by providers, the service and the monitor:
- types: Settings, snapshot and diagnostics dataclasses
- errors: All custom exceptions
- config: SettingsStore for settings persistence
- constants: Default values, endpoints and environment variable names
"""

from .types import (
    ProviderIdentity,
    SourceMode,
    CookieSourceMode,
    DiagnosticsEventType,
    ProviderSettings,
    AppSettings,
    UsageWindow,
    ProviderUsageSnapshot,
    AggregateSummary,
    DiagnosticsEntry,
    UsageRecord,
    DailyUsage,
    SessionUsage,
    LocalUsageSummary,
    SUPPORTED_PROVIDERS,
    resolve_source_order,
    sorted_providers,
    utc_now,
)

from .errors import (
    UsageMonitorError,
    SourceSkipped,
    NoCredentialsError,
    NotConfiguredError,
    TransientFetchError,
    ProcessError,
    AuthExpiredError,
    ConfigError,
    mask_credential,
)

from .config import (
    SettingsStore,
    default_log_roots,
    default_settings_path,
    normalize_log_roots,
    resolve_claude_config_dir,
    resolve_codex_home,
)

__all__ = [
    # Types
    "ProviderIdentity",
    "SourceMode",
    "CookieSourceMode",
    "DiagnosticsEventType",
    "ProviderSettings",
    "AppSettings",
    "UsageWindow",
    "ProviderUsageSnapshot",
    "AggregateSummary",
    "DiagnosticsEntry",
    "UsageRecord",
    "DailyUsage",
    "SessionUsage",
    "LocalUsageSummary",
    "SUPPORTED_PROVIDERS",
    "resolve_source_order",
    "sorted_providers",
    "utc_now",
    # Errors
    "UsageMonitorError",
    "SourceSkipped",
    "NoCredentialsError",
    "NotConfiguredError",
    "TransientFetchError",
    "ProcessError",
    "AuthExpiredError",
    "ConfigError",
    "mask_credential",
    # Config
    "SettingsStore",
    "default_settings_path",
    "default_log_roots",
    "normalize_log_roots",
    "resolve_claude_config_dir",
    "resolve_codex_home",
]
