# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage acquisition service.

Fans a refresh out across every enabled provider and collects one snapshot
per provider, in stable provider order.
"""

import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from .core.constants import DEFAULT_HTTP_TIMEOUT, LIB_LOGGER_NAME
from .core.types import (
    AppSettings,
    ProviderIdentity,
    ProviderUsageSnapshot,
    SourceMode,
    sorted_providers,
)
from .diagnostics import DiagnosticsLog
from .providers import ProviderFetcher, create_default_fetchers

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


class UsageAcquisitionService:
    """
    Fetches usage for all configured providers.

    Owns a shared httpx.AsyncClient unless one is injected. Use as an async
    context manager, or call aclose() when done.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        fetchers: Optional[Dict[ProviderIdentity, ProviderFetcher]] = None,
        diagnostics: Optional[DiagnosticsLog] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT)
        self.diagnostics = diagnostics
        if fetchers is None:
            fetchers = create_default_fetchers(self._client, diagnostics)
        self._fetchers = dict(fetchers)

    async def __aenter__(self) -> "UsageAcquisitionService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def fetchers(self) -> Dict[ProviderIdentity, ProviderFetcher]:
        return dict(self._fetchers)

    async def fetch(self, app_settings: AppSettings) -> List[ProviderUsageSnapshot]:
        """
        Fetch a snapshot for every enabled provider.

        Providers run concurrently; sources within a provider stay sequential.

        Returns:
            One snapshot per enabled provider, sorted by provider identity
        """
        providers = sorted_providers(
            provider
            for provider, settings in app_settings.enumerate_providers()
            if settings.enabled
        )
        if not providers:
            return []

        snapshots = await asyncio.gather(
            *(self.fetch_provider(app_settings, provider) for provider in providers)
        )
        return list(snapshots)

    async def fetch_provider(
        self, app_settings: AppSettings, provider: ProviderIdentity
    ) -> ProviderUsageSnapshot:
        """Fetch one provider's snapshot, regardless of its enabled flag."""
        provider_settings = app_settings.get_provider_settings(provider)
        fetcher = self._fetchers.get(provider)
        if fetcher is None:
            lib_logger.warning(f"No fetcher registered for provider '{provider.value}'")
            return ProviderUsageSnapshot(
                provider=provider,
                source_label=SourceMode.AUTO.value,
                error="No provider fetcher configured.",
            )
        return await fetcher.fetch(app_settings, provider_settings)
