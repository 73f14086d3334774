# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Shared type definitions for the usage monitor.

Settings types are mutable dataclasses owned by configuration. Everything
produced by a refresh cycle (windows, snapshots, diagnostics entries, the
aggregate summary) is a frozen dataclass: new values replace old ones, they
are never edited in place.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..usage.windows import format_reset_description
from .constants import DEFAULT_REFRESH_MINUTES, LIB_LOGGER_NAME
from .errors import ConfigError

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class ProviderIdentity(str, Enum):
    """External account-based provider being monitored."""

    CODEX = "codex"
    CLAUDE = "claude"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES.get(self, self.value.title())


_DISPLAY_NAMES = {
    ProviderIdentity.CODEX: "Codex",
    ProviderIdentity.CLAUDE: "Claude",
}

# Providers seeded into every settings object
SUPPORTED_PROVIDERS: Tuple[ProviderIdentity, ...] = (
    ProviderIdentity.CODEX,
    ProviderIdentity.CLAUDE,
)


class SourceMode(str, Enum):
    """Which acquisition source(s) to use for a provider."""

    AUTO = "auto"  # OAuth, then Web, then CLI
    OAUTH = "oauth"
    WEB = "web"
    CLI = "cli"


class CookieSourceMode(str, Enum):
    """Where web-source cookies come from."""

    AUTO = "auto"  # Never used automatically
    MANUAL = "manual"  # User-supplied cookie header


class DiagnosticsEventType(str, Enum):
    """Kind of diagnostics event."""

    FETCH_ATTEMPT = "fetch_attempt"
    FETCH_SUCCESS = "fetch_success"
    FETCH_FAILURE = "fetch_failure"
    REFRESH_STARTED = "refresh_started"
    REFRESH_COMPLETED = "refresh_completed"


def resolve_source_order(mode: SourceMode) -> List[SourceMode]:
    """
    Expand a source mode into the ordered list of sources to try.

    Auto is cheap-to-expensive: the OAuth API costs nothing extra, the web
    API needs user-supplied cookies, the CLI bridge spawns a process.
    """
    if mode == SourceMode.AUTO:
        return [SourceMode.OAUTH, SourceMode.WEB, SourceMode.CLI]
    return [mode]


# =============================================================================
# SETTINGS
# =============================================================================


@dataclass
class ProviderSettings:
    """Per-provider configuration."""

    enabled: bool = True
    source_mode: SourceMode = SourceMode.AUTO
    cookie_source: CookieSourceMode = CookieSourceMode.AUTO
    cookie_header: Optional[str] = None

    @classmethod
    def create_default(cls, provider: ProviderIdentity) -> "ProviderSettings":
        return cls(
            enabled=True,
            source_mode=SourceMode.AUTO,
            cookie_source=CookieSourceMode.AUTO,
        )

    @property
    def uses_manual_cookies(self) -> bool:
        """True when the web source is opted in with a non-blank cookie header."""
        return self.cookie_source == CookieSourceMode.MANUAL and bool(
            self.cookie_header and self.cookie_header.strip()
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "source_mode": self.source_mode.value,
            "cookie_source": self.cookie_source.value,
            "cookie_header": self.cookie_header,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProviderSettings":
        """
        Build provider settings from decoded JSON.

        Raises:
            ConfigError: If a field has the wrong type or an unknown value
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Provider settings must be an object, got {type(data).__name__}")

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ConfigError("Provider setting 'enabled' must be a boolean")

        cookie_header = data.get("cookie_header")
        if cookie_header is not None and not isinstance(cookie_header, str):
            raise ConfigError("Provider setting 'cookie_header' must be a string")

        try:
            source_mode = SourceMode(str(data.get("source_mode", "auto")).lower())
            cookie_source = CookieSourceMode(
                str(data.get("cookie_source", "auto")).lower()
            )
        except ValueError as e:
            raise ConfigError(f"Invalid provider setting: {e}") from e

        return cls(
            enabled=enabled,
            source_mode=source_mode,
            cookie_source=cookie_source,
            cookie_header=cookie_header,
        )


@dataclass
class AppSettings:
    """
    Top-level settings object.

    Replaced wholesale by the settings-save path; read-only to the engine
    while a refresh cycle runs.
    """

    refresh_minutes: int = DEFAULT_REFRESH_MINUTES
    providers: Dict[ProviderIdentity, Optional[ProviderSettings]] = field(
        default_factory=dict
    )
    # Directories scanned for *.jsonl usage logs; empty means the defaults
    log_roots: List[str] = field(default_factory=list)
    watch_file_changes: bool = True

    @classmethod
    def create_default(cls) -> "AppSettings":
        settings = cls()
        settings.normalize_providers()
        return settings

    def normalize_providers(self) -> None:
        """Seed a default entry for every supported provider that is missing or None."""
        if self.providers is None:
            self.providers = {}
        for provider in SUPPORTED_PROVIDERS:
            if self.providers.get(provider) is None:
                self.providers[provider] = ProviderSettings.create_default(provider)

    def enumerate_providers(self) -> List[Tuple[ProviderIdentity, ProviderSettings]]:
        self.normalize_providers()
        return [
            (provider, self.get_provider_settings(provider))
            for provider in self.providers
        ]

    def get_provider_settings(self, provider: ProviderIdentity) -> ProviderSettings:
        """Return the settings for a provider, seeding a default entry if absent."""
        self.normalize_providers()
        settings = self.providers.get(provider)
        if settings is None:
            settings = ProviderSettings.create_default(provider)
            self.providers[provider] = settings
        return settings

    def validate(self) -> None:
        """
        Check the object is well-formed.

        Raises:
            ConfigError: On any malformed field
        """
        if isinstance(self.refresh_minutes, bool) or not isinstance(
            self.refresh_minutes, int
        ):
            raise ConfigError(
                f"refresh_minutes must be an integer, got {self.refresh_minutes!r}"
            )
        if not isinstance(self.providers, dict):
            raise ConfigError("providers must be a mapping")
        for provider, settings in self.providers.items():
            if not isinstance(provider, ProviderIdentity):
                raise ConfigError(f"Unknown provider key: {provider!r}")
            if settings is None:
                continue
            if not isinstance(settings, ProviderSettings):
                raise ConfigError(f"Settings for {provider.value} are malformed")
            if not isinstance(settings.source_mode, SourceMode):
                raise ConfigError(f"Invalid source mode for {provider.value}")
            if not isinstance(settings.cookie_source, CookieSourceMode):
                raise ConfigError(f"Invalid cookie source for {provider.value}")
        if not isinstance(self.log_roots, list) or not all(
            isinstance(root, str) for root in self.log_roots
        ):
            raise ConfigError("log_roots must be a list of paths")
        if not isinstance(self.watch_file_changes, bool):
            raise ConfigError("watch_file_changes must be a boolean")

    def to_dict(self) -> Dict[str, Any]:
        self.normalize_providers()
        return {
            "refresh_minutes": self.refresh_minutes,
            "providers": {
                provider.value: settings.to_dict()
                for provider, settings in self.providers.items()
                if settings is not None
            },
            "log_roots": list(self.log_roots),
            "watch_file_changes": self.watch_file_changes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        """
        Build settings from decoded JSON.

        Unknown provider keys are ignored. Structural problems raise.

        Raises:
            ConfigError: If the document is malformed
        """
        if not isinstance(data, dict):
            raise ConfigError("Settings document must be a JSON object")

        refresh_minutes = data.get("refresh_minutes", DEFAULT_REFRESH_MINUTES)
        if isinstance(refresh_minutes, bool) or not isinstance(refresh_minutes, int):
            raise ConfigError("refresh_minutes must be an integer")
        if refresh_minutes <= 0:
            refresh_minutes = DEFAULT_REFRESH_MINUTES

        raw_providers = data.get("providers") or {}
        if not isinstance(raw_providers, dict):
            raise ConfigError("providers must be an object")

        providers: Dict[ProviderIdentity, Optional[ProviderSettings]] = {}
        for key, value in raw_providers.items():
            try:
                provider = ProviderIdentity(str(key).lower())
            except ValueError:
                lib_logger.debug(f"Ignoring settings for unknown provider '{key}'")
                continue
            providers[provider] = (
                ProviderSettings.from_dict(value) if value is not None else None
            )

        log_roots = data.get("log_roots") or []
        if not isinstance(log_roots, list) or not all(
            isinstance(root, str) for root in log_roots
        ):
            raise ConfigError("log_roots must be a list of paths")

        watch_file_changes = data.get("watch_file_changes", True)
        if not isinstance(watch_file_changes, bool):
            raise ConfigError("watch_file_changes must be a boolean")

        settings = cls(
            refresh_minutes=refresh_minutes,
            providers=providers,
            log_roots=list(log_roots),
            watch_file_changes=watch_file_changes,
        )
        settings.normalize_providers()
        return settings


# =============================================================================
# USAGE SNAPSHOTS
# =============================================================================


@dataclass(frozen=True)
class UsageWindow:
    """
    One quota period (e.g. session, weekly).

    The reset description is always derived from resets_at.
    """

    label: str
    used_percent: Optional[float] = None
    window_minutes: Optional[int] = None
    resets_at: Optional[datetime] = None

    @property
    def reset_description(self) -> Optional[str]:
        return format_reset_description(self.resets_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "used_percent": self.used_percent,
            "window_minutes": self.window_minutes,
            "resets_at": self.resets_at.isoformat() if self.resets_at else None,
            "reset_description": self.reset_description,
        }


@dataclass(frozen=True)
class ProviderUsageSnapshot:
    """
    Normalized result of one fetch for one provider.

    Usage data and an error may coexist when a later stage failed after
    partial data was retrieved.
    """

    provider: ProviderIdentity
    source_label: str = "unknown"
    account_email: Optional[str] = None
    account_plan: Optional[str] = None
    primary: Optional[UsageWindow] = None
    secondary: Optional[UsageWindow] = None
    credits_text: Optional[str] = None
    error: Optional[str] = None
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def has_usage(self) -> bool:
        return (
            self.primary is not None
            or self.secondary is not None
            or self.credits_text is not None
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider.value,
            "source_label": self.source_label,
            "account_email": self.account_email,
            "account_plan": self.account_plan,
            "primary": self.primary.to_dict() if self.primary else None,
            "secondary": self.secondary.to_dict() if self.secondary else None,
            "credits_text": self.credits_text,
            "error": self.error,
            "updated_at": self.updated_at.isoformat(),
        }


# =============================================================================
# LOCAL USAGE LOGS
# =============================================================================


@dataclass(frozen=True)
class UsageRecord:
    """Token usage parsed from one line of a local JSONL log."""

    timestamp: datetime
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    provider: Optional[ProviderIdentity] = None
    session_id: Optional[str] = None
    source_file: str = ""


@dataclass(frozen=True)
class DailyUsage:
    day: date
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class SessionUsage:
    """Token totals of the most recently active session."""

    last_activity: datetime
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    provider: Optional[ProviderIdentity] = None
    session_id: Optional[str] = None


@dataclass(frozen=True)
class LocalUsageSummary:
    """
    Result of one scan over the configured log roots.

    daily_totals covers the trailing window of days in ascending order;
    days without records are omitted.
    """

    daily_totals: Tuple[DailyUsage, ...] = ()
    last_session: Optional[SessionUsage] = None
    records_parsed: int = 0
    files_scanned: int = 0
    log_roots: Tuple[str, ...] = ()
    scan_errors: Tuple[str, ...] = ()
    last_updated: Optional[datetime] = None

    @property
    def total_tokens(self) -> int:
        return sum(day.total_tokens for day in self.daily_totals)

    def get_day(self, day: date) -> Optional[DailyUsage]:
        for daily in self.daily_totals:
            if daily.day == day:
                return daily
        return None


@dataclass(frozen=True)
class AggregateSummary:
    """
    All provider snapshots published by one refresh cycle, plus the local
    log usage scanned in the same cycle.

    Never mutated after publication; use with_snapshot() to derive a new one.
    """

    snapshots: Tuple[ProviderUsageSnapshot, ...] = ()
    last_updated: Optional[datetime] = None
    local_usage: Optional[LocalUsageSummary] = None

    def get(self, provider: ProviderIdentity) -> Optional[ProviderUsageSnapshot]:
        for snapshot in self.snapshots:
            if snapshot.provider == provider:
                return snapshot
        return None

    def with_snapshot(self, snapshot: ProviderUsageSnapshot) -> "AggregateSummary":
        """
        Return a new summary with one provider's snapshot replaced (or added).

        Other snapshots are carried over as the same objects.
        """
        replaced = False
        snapshots: List[ProviderUsageSnapshot] = []
        for existing in self.snapshots:
            if existing.provider == snapshot.provider:
                snapshots.append(snapshot)
                replaced = True
            else:
                snapshots.append(existing)
        if not replaced:
            snapshots.append(snapshot)
            snapshots.sort(key=lambda item: item.provider.value)
        return AggregateSummary(
            snapshots=tuple(snapshots),
            last_updated=utc_now(),
            local_usage=self.local_usage,
        )


# =============================================================================
# DIAGNOSTICS
# =============================================================================


@dataclass(frozen=True)
class DiagnosticsEntry:
    """One diagnostics event. Immutable once created."""

    event_type: DiagnosticsEventType
    message: str = ""
    provider: Optional[ProviderIdentity] = None
    source_label: Optional[str] = None
    duration: Optional[timedelta] = None
    timestamp: datetime = field(default_factory=utc_now)


DiagnosticsObserver = Callable[[DiagnosticsEntry], None]
SummaryObserver = Callable[[AggregateSummary], None]


def sorted_providers(
    providers: Iterable[ProviderIdentity],
) -> List[ProviderIdentity]:
    """Stable provider order used for every aggregate."""
    return sorted(providers, key=lambda provider: provider.value)
