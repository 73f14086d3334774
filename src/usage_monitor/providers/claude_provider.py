# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Claude usage provider.

Sources:
    oauth - Claude Code's .credentials.json against the OAuth usage endpoint
    web   - user-supplied claude.ai sessionKey cookie
    cli   - /usage in the interactive claude CLI
"""

import asyncio
import logging
from typing import Optional

import httpx

from ..cli_bridge.claude_cli import ClaudeCliFetcher
from ..core.constants import CLAUDE_WEB_API_BASE, LIB_LOGGER_NAME
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
from .utilities.claude_credentials import ClaudeCredentialStore
from .utilities.claude_usage_api import ClaudeWebApiFetcher, fetch_oauth_usage

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


class ClaudeProvider(ProviderFetcher):
    provider = ProviderIdentity.CLAUDE

    def __init__(
        self,
        client: httpx.AsyncClient,
        diagnostics: Optional[DiagnosticsLog] = None,
        credential_store: Optional[ClaudeCredentialStore] = None,
        cli_fetcher: Optional[ClaudeCliFetcher] = None,
        web_api_base: str = CLAUDE_WEB_API_BASE,
    ):
        super().__init__(client, diagnostics)
        self.credential_store = credential_store or ClaudeCredentialStore()
        self.cli_fetcher = cli_fetcher or ClaudeCliFetcher()
        self.web_fetcher = ClaudeWebApiFetcher(client, base_url=web_api_base)

    async def fetch_oauth(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        credentials = await asyncio.to_thread(self.credential_store.load)
        if credentials is None:
            raise NoCredentialsError(
                f"No Claude credentials at {self.credential_store.path}"
            )
        # Claude Code owns the refresh; an expired bundle has nothing to offer
        if credentials.is_expired():
            raise NoCredentialsError("Claude OAuth token expired")

        usage = await fetch_oauth_usage(self._client, credentials.access_token)
        return ProviderUsageSnapshot(
            provider=self.provider,
            source_label=SourceMode.OAUTH.value,
            account_plan=credentials.plan,
            primary=usage.primary,
            secondary=usage.secondary,
        )

    async def fetch_web(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        cookie_header = self.require_manual_cookies(provider_settings)
        usage = await self.web_fetcher.fetch(cookie_header)
        return ProviderUsageSnapshot(
            provider=self.provider,
            source_label=SourceMode.WEB.value,
            account_email=usage.account_email,
            primary=usage.primary,
            secondary=usage.secondary,
            credits_text=usage.extra_usage_text,
        )

    async def fetch_cli(
        self, app_settings: AppSettings, provider_settings: ProviderSettings
    ) -> Optional[ProviderUsageSnapshot]:
        return self.snapshot_from_cli(await self.cli_fetcher.fetch())
