# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Settings persistence for the usage monitor.

SettingsStore loads settings from:
1. The JSON settings file (missing or malformed file -> defaults)
2. Environment variables (ALWAYS override the file)

Saving writes only the in-memory object; environment overrides are applied
again on the next load and never written back.
"""

import json
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .constants import (
    CLAUDE_CONFIG_DIR_ENV,
    CODEX_HOME_ENV,
    DEFAULT_REFRESH_MINUTES,
    ENV_LOG_ROOTS,
    ENV_PREFIX,
    ENV_REFRESH_MINUTES,
    ENV_SUFFIX_ENABLED,
    ENV_SUFFIX_SOURCE_MODE,
    ENV_WATCH_FILE_CHANGES,
    LIB_LOGGER_NAME,
    SCAN_CACHE_FILE_NAME,
    SETTINGS_FILE_NAME,
    SETTINGS_PATH_ENV,
)
from .errors import ConfigError
from .types import AppSettings, SourceMode

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


def default_settings_path() -> Path:
    """Settings file location: $USAGE_MONITOR_SETTINGS or ~/.config/usage-monitor/settings.json."""
    override = os.getenv(SETTINGS_PATH_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "usage-monitor" / SETTINGS_FILE_NAME


def resolve_codex_home() -> Path:
    """$CODEX_HOME, else ~/.codex."""
    codex_home = os.getenv(CODEX_HOME_ENV)
    if codex_home and codex_home.strip():
        return Path(codex_home.strip()).expanduser()
    return Path.home() / ".codex"


def resolve_claude_config_dir() -> Path:
    """$CLAUDE_CONFIG_DIR, else ~/.claude."""
    config_dir = os.getenv(CLAUDE_CONFIG_DIR_ENV)
    if config_dir and config_dir.strip():
        return Path(config_dir.strip()).expanduser()
    return Path.home() / ".claude"


# =============================================================================
# LOG ROOTS
# =============================================================================


def default_log_roots() -> List[str]:
    """Codex session logs and Claude project logs."""
    return [
        str(resolve_codex_home() / "sessions"),
        str(resolve_claude_config_dir() / "projects"),
    ]


def normalize_log_roots(roots: Optional[Iterable[str]]) -> List[str]:
    """
    Clean up configured log roots.

    Blank and duplicate entries are dropped. An empty result falls back to
    the defaults; otherwise the Codex sessions directory is always included.
    """
    normalized: List[str] = []
    seen = set()
    for root in roots or ():
        if not isinstance(root, str) or not root.strip():
            continue
        path = str(Path(root.strip()).expanduser())
        key = os.path.normcase(path)
        if key in seen:
            continue
        seen.add(key)
        normalized.append(path)

    if not normalized:
        return default_log_roots()

    sessions_root = str(resolve_codex_home() / "sessions")
    if os.path.normcase(sessions_root) not in seen:
        normalized.append(sessions_root)
    return normalized


class SettingsStore:
    """
    Loads and saves AppSettings as JSON.

    Both operations are synchronous and cheap; the monitor calls them from
    a worker thread.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path is not None else default_settings_path()

    @property
    def cache_path(self) -> Path:
        """Log scan cache, kept next to the settings file."""
        return self.path.parent / SCAN_CACHE_FILE_NAME

    def load(self) -> AppSettings:
        """
        Load settings, falling back to defaults on any read or decode failure.

        Returns:
            Normalized settings with environment overrides applied
        """
        settings = self._read_file()
        if settings is None:
            settings = AppSettings.create_default()
        self._apply_env_overrides(settings)
        settings.log_roots = normalize_log_roots(settings.log_roots)
        return settings

    def save(self, settings: AppSettings) -> None:
        """
        Persist settings atomically.

        Raises:
            ConfigError: If the settings object is malformed
            OSError: If the file cannot be written
        """
        settings.validate()
        settings.normalize_providers()
        settings.log_roots = normalize_log_roots(settings.log_roots)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
        temp_path.replace(self.path)

        lib_logger.debug(f"Saved settings to {self.path}")

    def _read_file(self) -> Optional[AppSettings]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
            if not text.strip():
                return None
            return AppSettings.from_dict(json.loads(text))
        except (OSError, json.JSONDecodeError, ConfigError) as e:
            lib_logger.warning(
                f"Ignoring unreadable settings file {self.path}: {e}. Using defaults."
            )
            return None

    def _apply_env_overrides(self, settings: AppSettings) -> None:
        """
        Apply environment variable overrides.

        USAGE_MONITOR_REFRESH_MINUTES, USAGE_MONITOR_LOG_ROOTS (os.pathsep
        separated), USAGE_MONITOR_WATCH_FILE_CHANGES, and per provider
        USAGE_MONITOR_{PROVIDER}_ENABLED / USAGE_MONITOR_{PROVIDER}_SOURCE_MODE.
        Invalid values are logged and ignored.
        """
        env_val = os.getenv(ENV_REFRESH_MINUTES)
        if env_val:
            try:
                minutes = int(env_val)
                settings.refresh_minutes = (
                    minutes if minutes > 0 else DEFAULT_REFRESH_MINUTES
                )
            except ValueError:
                lib_logger.warning(f"Invalid {ENV_REFRESH_MINUTES}='{env_val}'. Ignoring.")

        for provider, provider_settings in settings.enumerate_providers():
            provider_upper = provider.value.upper()

            env_key = f"{ENV_PREFIX}{provider_upper}{ENV_SUFFIX_ENABLED}"
            env_val = os.getenv(env_key)
            if env_val is not None:
                provider_settings.enabled = env_val.lower() in ("true", "1", "yes")

            env_key = f"{ENV_PREFIX}{provider_upper}{ENV_SUFFIX_SOURCE_MODE}"
            env_val = os.getenv(env_key)
            if env_val:
                try:
                    provider_settings.source_mode = SourceMode(env_val.lower())
                except ValueError:
                    lib_logger.warning(f"Invalid {env_key}='{env_val}'. Ignoring.")

        env_val = os.getenv(ENV_LOG_ROOTS)
        if env_val:
            settings.log_roots = [root for root in env_val.split(os.pathsep) if root.strip()]

        env_val = os.getenv(ENV_WATCH_FILE_CHANGES)
        if env_val is not None:
            settings.watch_file_changes = env_val.lower() in ("true", "1", "yes")
