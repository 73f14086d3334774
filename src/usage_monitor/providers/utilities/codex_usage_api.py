# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/usage_monitor/providers/utilities/codex_usage_api.py
"""
Codex usage endpoint client (OAuth bearer and cookie variants).

The usage URL follows the Codex CLI's own configuration: chatgpt_base_url in
$CODEX_HOME/config.toml, defaulting to https://chatgpt.com/backend-api.
"""

from __future__ import annotations

import asyncio
import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from ...core.config import resolve_codex_home
from ...core.constants import (
    CODEX_CONFIG_FILE_NAME,
    DEFAULT_CHATGPT_BASE_URL,
    LIB_LOGGER_NAME,
    USER_AGENT,
)
from ...core.errors import TransientFetchError
from ...core.types import UsageWindow
from ...usage.windows import SESSION_LABEL, WEEKLY_LABEL
from .shared_utils import (
    datetime_from_epoch,
    first_child,
    first_number,
    first_str,
    format_credits,
    read_json_object,
)

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

_CHATGPT_HOSTS = ("https://chatgpt.com", "https://chat.openai.com")


@dataclass(frozen=True)
class CodexUsage:
    """Decoded usage response."""

    plan_type: Optional[str] = None
    primary: Optional[UsageWindow] = None
    secondary: Optional[UsageWindow] = None
    credits_text: Optional[str] = None


# =============================================================================
# URL RESOLUTION
# =============================================================================


def normalize_base_url(value: str) -> str:
    """Trim the URL and make sure ChatGPT hosts point at /backend-api."""
    trimmed = value.strip().rstrip("/")
    lowered = trimmed.lower()
    if lowered.startswith(_CHATGPT_HOSTS) and "/backend-api" not in lowered:
        trimmed += "/backend-api"
    return trimmed


def resolve_chatgpt_base_url(config_path: Optional[Path] = None) -> str:
    """Read chatgpt_base_url from the Codex config, else the default."""
    if config_path is None:
        config_path = resolve_codex_home() / CODEX_CONFIG_FILE_NAME
    if not config_path.exists():
        return DEFAULT_CHATGPT_BASE_URL

    try:
        with open(config_path, "rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        lib_logger.warning(f"Could not parse {config_path}: {e}")
        return DEFAULT_CHATGPT_BASE_URL

    base_url = first_str(config, ("chatgpt_base_url",))
    if not base_url:
        return DEFAULT_CHATGPT_BASE_URL
    return normalize_base_url(base_url)


def resolve_usage_url(base_url: Optional[str] = None) -> str:
    """
    Usage endpoint for a base URL.

    Backend-API style bases use /wham/usage, anything else /api/codex/usage.
    """
    if base_url is None:
        base_url = resolve_chatgpt_base_url()
    base = base_url.rstrip("/")
    if "/backend-api" in base.lower():
        return f"{base}/wham/usage"
    return f"{base}/api/codex/usage"


# =============================================================================
# RESPONSE DECODING
# =============================================================================


def _to_window(window: Optional[Dict[str, Any]], label: str) -> Optional[UsageWindow]:
    if window is None:
        return None
    window_seconds = first_number(window, ("limit_window_seconds",))
    return UsageWindow(
        label=label,
        used_percent=first_number(window, ("used_percent",)),
        window_minutes=int(window_seconds // 60) if window_seconds is not None else None,
        resets_at=datetime_from_epoch(first_number(window, ("reset_at",))),
    )


def parse_usage_response(data: Dict[str, Any]) -> CodexUsage:
    rate_limit = first_child(data, ("rate_limit",))
    return CodexUsage(
        plan_type=first_str(data, ("plan_type",)),
        primary=_to_window(first_child(rate_limit, ("primary_window",)), SESSION_LABEL),
        secondary=_to_window(
            first_child(rate_limit, ("secondary_window",)), WEEKLY_LABEL
        ),
        credits_text=format_credits(data.get("credits")),
    )


# =============================================================================
# REQUESTS
# =============================================================================


async def _get_usage(
    client: httpx.AsyncClient,
    headers: Dict[str, str],
    failure_message: str,
    usage_url: Optional[str],
) -> CodexUsage:
    url = usage_url or await asyncio.to_thread(resolve_usage_url)
    request_headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    request_headers.update(headers)

    lib_logger.debug(f"GET {url}")
    try:
        response = await client.get(url, headers=request_headers)
    except httpx.RequestError as e:
        raise TransientFetchError(f"{failure_message.format(status='request error')} {e}") from e

    return parse_usage_response(read_json_object(response, failure_message))


async def fetch_usage(
    client: httpx.AsyncClient,
    access_token: str,
    account_id: Optional[str] = None,
    usage_url: Optional[str] = None,
) -> CodexUsage:
    """
    Fetch usage with an OAuth bearer token.

    Raises:
        TransientFetchError: On transport failure, non-2xx status or bad body
    """
    headers = {"Authorization": f"Bearer {access_token}"}
    if account_id and account_id.strip():
        headers["ChatGPT-Account-Id"] = account_id
    return await _get_usage(
        client, headers, "Codex OAuth API failed ({status}).", usage_url
    )


async def fetch_usage_with_cookies(
    client: httpx.AsyncClient,
    cookie_header: str,
    usage_url: Optional[str] = None,
) -> CodexUsage:
    """
    Fetch usage with a browser session cookie header.

    Raises:
        TransientFetchError: On transport failure, non-2xx status or bad body
    """
    return await _get_usage(
        client,
        {"Cookie": cookie_header},
        "Codex web usage failed ({status}).",
        usage_url,
    )
