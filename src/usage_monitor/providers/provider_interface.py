# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Provider fetch coordinator.

A ProviderFetcher turns one provider's configured source mode into an ordered
list of sources and walks it until one produces usage:

    for source in resolve_source_order(mode):
        usage  -> success, stop
        None   -> no data, next source
        raise  -> collect message, next source

Nothing raised by a source escapes fetch(); when every source comes up empty
the snapshot carries the collected messages instead of usage.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Awaitable, Callable, ClassVar, Dict, List, Optional

import httpx

from ..cli_bridge.scraping import CliUsage
from ..core.constants import LIB_LOGGER_NAME
from ..core.errors import AuthExpiredError, NotConfiguredError, SourceSkipped
from ..core.types import (
    AppSettings,
    ProviderIdentity,
    ProviderSettings,
    ProviderUsageSnapshot,
    SourceMode,
    resolve_source_order,
)
from ..diagnostics import DiagnosticsLog

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

SourceHandler = Callable[
    [AppSettings, ProviderSettings], Awaitable[Optional[ProviderUsageSnapshot]]
]


class ProviderFetcher(ABC):
    """
    Base class for per-provider usage fetchers.

    Subclasses set `provider` and implement one coroutine per source. Each
    returns a snapshot on success, None (or raises SourceSkipped) when the
    source has nothing to offer, and raises for real failures.
    """

    provider: ClassVar[ProviderIdentity]

    def __init__(
        self,
        client: httpx.AsyncClient,
        diagnostics: Optional[DiagnosticsLog] = None,
    ):
        self._client = client
        self._diagnostics = diagnostics

    @property
    def display_name(self) -> str:
        return self.provider.display_name

    # =========================================================================
    # SOURCES
    # =========================================================================

    @abstractmethod
    async def fetch_oauth(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        ...

    @abstractmethod
    async def fetch_web(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        ...

    @abstractmethod
    async def fetch_cli(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        ...

    def source_handlers(self) -> Dict[SourceMode, SourceHandler]:
        return {
            SourceMode.OAUTH: self.fetch_oauth,
            SourceMode.WEB: self.fetch_web,
            SourceMode.CLI: self.fetch_cli,
        }

    # =========================================================================
    # FALLBACK CHAIN
    # =========================================================================

    async def fetch(
        self,
        app_settings: AppSettings,
        provider_settings: Optional[ProviderSettings] = None,
    ) -> ProviderUsageSnapshot:
        """
        Run the fallback chain for this provider.

        Never raises except for task cancellation.

        Returns:
            The first successful snapshot, or an error snapshot
        """
        if provider_settings is None:
            provider_settings = ProviderSettings.create_default(self.provider)

        handlers = self.source_handlers()
        errors: List[str] = []

        for source in resolve_source_order(provider_settings.source_mode):
            source_name = source.value
            self._log_attempt(source_name)
            started = time.monotonic()

            try:
                snapshot = await handlers[source](app_settings, provider_settings)
            except SourceSkipped as e:
                lib_logger.debug(f"{self.display_name} {source_name} skipped: {e}")
                snapshot = None
            except AuthExpiredError as e:
                lib_logger.warning(f"{self.display_name} {source_name}: {e}")
                self._log_failure(source_name, str(e), _elapsed(started))
                errors.append(str(e))
                continue
            except Exception as e:
                message = str(e) or type(e).__name__
                lib_logger.debug(f"{self.display_name} {source_name} failed: {message}")
                self._log_failure(source_name, message, _elapsed(started))
                errors.append(message)
                continue

            if snapshot is not None:
                self._log_success(source_name, _elapsed(started))
                return snapshot

            self._log_failure(source_name, f"No data from {source_name}", _elapsed(started))

        return ProviderUsageSnapshot(
            provider=self.provider,
            source_label=provider_settings.source_mode.value,
            error=(
                " ".join(errors)
                if errors
                else f"No {self.display_name} usage sources available."
            ),
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def require_manual_cookies(provider_settings: ProviderSettings) -> str:
        """
        Return the user-supplied cookie header.

        Raises:
            NotConfiguredError: If manual cookies are not configured
        """
        if not provider_settings.uses_manual_cookies:
            raise NotConfiguredError("Manual cookie header not configured.")
        return provider_settings.cookie_header.strip()

    def snapshot_from_cli(self, usage: Optional[CliUsage]) -> Optional[ProviderUsageSnapshot]:
        if usage is None:
            return None
        return ProviderUsageSnapshot(
            provider=self.provider,
            source_label=usage.source_label,
            account_email=usage.account_email,
            account_plan=usage.account_plan,
            primary=usage.primary,
            secondary=usage.secondary,
            credits_text=usage.credits_text,
        )

    def _log_attempt(self, source: str) -> None:
        if self._diagnostics is not None:
            self._diagnostics.log_attempt(self.provider, source)

    def _log_success(self, source: str, duration: timedelta) -> None:
        if self._diagnostics is not None:
            self._diagnostics.log_success(self.provider, source, duration)

    def _log_failure(self, source: str, message: str, duration: timedelta) -> None:
        if self._diagnostics is not None:
            self._diagnostics.log_failure(self.provider, source, message, duration)


def _elapsed(started: float) -> timedelta:
    return timedelta(seconds=time.monotonic() - started)
