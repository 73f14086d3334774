# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Constants and default values for the usage monitor.

Tunable defaults (timeouts, thresholds, capacities) and fixed protocol
values (endpoints, client ids, environment variable names) live here so
every module imports them from one place.
"""

from datetime import timedelta

# =============================================================================
# LOGGING
# =============================================================================

LIB_LOGGER_NAME = "usage_monitor"

# =============================================================================
# SCHEDULING
# =============================================================================

DEFAULT_REFRESH_MINUTES = 5
MIN_REFRESH_MINUTES = 1

# Diagnostics ring buffer size
DIAGNOSTICS_CAPACITY = 100

# =============================================================================
# HTTP
# =============================================================================

DEFAULT_HTTP_TIMEOUT = 20.0
USER_AGENT = "usage-monitor"

# =============================================================================
# CODEX (ChatGPT)
# =============================================================================

CODEX_HOME_ENV = "CODEX_HOME"
CODEX_AUTH_FILE_NAME = "auth.json"
CODEX_CONFIG_FILE_NAME = "config.toml"

CODEX_REFRESH_ENDPOINT = "https://auth.openai.com/oauth/token"
CODEX_CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
CODEX_REFRESH_SCOPE = "openid profile email"

# Tokens older than this are refreshed before the usage call
REFRESH_STALENESS = timedelta(days=8)

DEFAULT_CHATGPT_BASE_URL = "https://chatgpt.com/backend-api"

# =============================================================================
# CLAUDE
# =============================================================================

CLAUDE_CONFIG_DIR_ENV = "CLAUDE_CONFIG_DIR"
CLAUDE_CREDENTIALS_FILE_NAME = ".credentials.json"

CLAUDE_OAUTH_USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
CLAUDE_OAUTH_BETA_HEADER = "oauth-2025-04-20"
CLAUDE_WEB_API_BASE = "https://claude.ai/api"

SESSION_WINDOW_MINUTES = 5 * 60
WEEKLY_WINDOW_MINUTES = 7 * 24 * 60

# =============================================================================
# CLI BRIDGE
# =============================================================================

CODEX_EXECUTABLE = "codex"
CODEX_RPC_ARGS = ("-s", "read-only", "-a", "untrusted", "app-server")
CODEX_INTERACTIVE_COMMAND = "/status\n"
CODEX_INTERACTIVE_TIMEOUT = 8.0

CLAUDE_EXECUTABLE = "claude"
CLAUDE_INTERACTIVE_ARGS = ("--allowed-tools", "")
CLAUDE_INTERACTIVE_COMMAND = "/usage\n"
CLAUDE_INTERACTIVE_TIMEOUT = 10.0

RPC_REQUEST_TIMEOUT = 5.0
RPC_CLIENT_NAME = "usage-monitor"
RPC_CLIENT_VERSION = "0.1"

# Grace period for draining stderr after a child has been killed
PROCESS_DRAIN_TIMEOUT = 1.0

# =============================================================================
# SETTINGS
# =============================================================================

SETTINGS_PATH_ENV = "USAGE_MONITOR_SETTINGS"
SETTINGS_FILE_NAME = "settings.json"

# Environment overrides (ALWAYS win over the settings file)
ENV_PREFIX = "USAGE_MONITOR_"
ENV_REFRESH_MINUTES = "USAGE_MONITOR_REFRESH_MINUTES"
ENV_SUFFIX_ENABLED = "_ENABLED"
ENV_SUFFIX_SOURCE_MODE = "_SOURCE_MODE"
ENV_LOG_ROOTS = "USAGE_MONITOR_LOG_ROOTS"
ENV_WATCH_FILE_CHANGES = "USAGE_MONITOR_WATCH_FILE_CHANGES"

# =============================================================================
# LOCAL USAGE LOGS
# =============================================================================

LOG_FILE_PATTERN = "*.jsonl"
SCAN_CACHE_FILE_NAME = "scan-cache.json"

# Daily totals kept in a summary, today included
DAILY_TOTALS_DAYS = 30

# File change detection: poll period and quiet time before a refresh
LOG_WATCH_POLL_INTERVAL = 1.0
LOG_WATCH_DEBOUNCE = 2.0
