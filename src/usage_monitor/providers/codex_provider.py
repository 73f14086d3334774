# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Codex (ChatGPT) usage provider.

Sources:
    oauth - auth.json tokens (refreshed when stale) against the usage endpoint
    web   - user-supplied ChatGPT cookies against the same endpoint
    cli   - codex app-server JSON-RPC, falling back to the /status TUI
"""

import logging
from typing import Optional

import httpx

from ..cli_bridge.codex_cli import CodexCliFetcher
from ..core.constants import LIB_LOGGER_NAME
from ..core.errors import NoCredentialsError
from ..core.types import (
    AppSettings,
    ProviderIdentity,
    ProviderSettings,
    ProviderUsageSnapshot,
    SourceMode,
)
from ..diagnostics import DiagnosticsLog
from .provider_interface import ProviderFetcher
from .utilities.codex_credentials import (
    CodexCredentialStore,
    resolve_email,
    resolve_plan,
)
from .utilities.codex_usage_api import fetch_usage, fetch_usage_with_cookies

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


class CodexProvider(ProviderFetcher):
    provider = ProviderIdentity.CODEX

    def __init__(
        self,
        client: httpx.AsyncClient,
        diagnostics: Optional[DiagnosticsLog] = None,
        credential_store: Optional[CodexCredentialStore] = None,
        cli_fetcher: Optional[CodexCliFetcher] = None,
        usage_url: Optional[str] = None,
    ):
        super().__init__(client, diagnostics)
        self.credential_store = credential_store or CodexCredentialStore()
        self.cli_fetcher = cli_fetcher or CodexCliFetcher()
        self.usage_url = usage_url

    async def fetch_oauth(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        credentials = await self.credential_store.ensure_fresh(self._client)
        if credentials is None:
            raise NoCredentialsError(
                f"No Codex credentials at {self.credential_store.path}"
            )

        usage = await fetch_usage(
            self._client,
            credentials.access_token,
            credentials.account_id,
            usage_url=self.usage_url,
        )
        return ProviderUsageSnapshot(
            provider=self.provider,
            source_label=SourceMode.OAUTH.value,
            account_email=resolve_email(credentials),
            account_plan=resolve_plan(credentials, usage.plan_type),
            primary=usage.primary,
            secondary=usage.secondary,
            credits_text=usage.credits_text,
        )

    async def fetch_web(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        cookie_header = self.require_manual_cookies(provider_settings)
        usage = await fetch_usage_with_cookies(
            self._client, cookie_header, usage_url=self.usage_url
        )
        return ProviderUsageSnapshot(
            provider=self.provider,
            source_label=SourceMode.WEB.value,
            account_plan=usage.plan_type,
            primary=usage.primary,
            secondary=usage.secondary,
            credits_text=usage.credits_text,
        )

    async def fetch_cli(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        return self.snapshot_from_cli(await self.cli_fetcher.fetch())
