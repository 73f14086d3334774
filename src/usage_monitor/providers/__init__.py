# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage providers and their registry.

The registry maps each ProviderIdentity to its fetcher class; adding a
provider means adding a ProviderFetcher subclass and one entry here.
"""

import logging
from typing import Dict, Optional, Type

import httpx

from ..core.constants import LIB_LOGGER_NAME
from ..core.types import ProviderIdentity
from ..diagnostics import DiagnosticsLog
from .provider_interface import ProviderFetcher
from .codex_provider import CodexProvider
from .claude_provider import ClaudeProvider

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

PROVIDER_FETCHERS: Dict[ProviderIdentity, Type[ProviderFetcher]] = {
    ProviderIdentity.CODEX: CodexProvider,
    ProviderIdentity.CLAUDE: ClaudeProvider,
}


def create_default_fetchers(
    client: httpx.AsyncClient,
    diagnostics: Optional[DiagnosticsLog] = None,
) -> Dict[ProviderIdentity, ProviderFetcher]:
    """Instantiate one fetcher per registered provider, sharing one HTTP client."""
    fetchers = {
        provider: fetcher_class(client, diagnostics)
        for provider, fetcher_class in PROVIDER_FETCHERS.items()
    }
    lib_logger.debug(
        f"Registered fetchers: {', '.join(p.value for p in fetchers)}"
    )
    return fetchers


__all__ = [
    "PROVIDER_FETCHERS",
    "ProviderFetcher",
    "CodexProvider",
    "ClaudeProvider",
    "create_default_fetchers",
]
