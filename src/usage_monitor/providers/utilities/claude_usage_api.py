# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/usage_monitor/providers/utilities/claude_usage_api.py
"""
Claude usage clients: the OAuth usage endpoint and the claude.ai web API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ...core.constants import (
    CLAUDE_OAUTH_BETA_HEADER,
    CLAUDE_OAUTH_USAGE_URL,
    CLAUDE_WEB_API_BASE,
    LIB_LOGGER_NAME,
    SESSION_WINDOW_MINUTES,
    USER_AGENT,
    WEEKLY_WINDOW_MINUTES,
)
from ...core.errors import TransientFetchError
from ...core.types import UsageWindow
from ...usage.windows import SESSION_LABEL, WEEKLY_LABEL
from .shared_utils import (
    find_cookie,
    first_bool,
    first_child,
    first_number,
    first_str,
    format_amount,
    parse_iso_datetime,
    read_json_object,
)

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


@dataclass(frozen=True)
class ClaudeUsage:
    primary: Optional[UsageWindow] = None
    secondary: Optional[UsageWindow] = None
    account_email: Optional[str] = None
    extra_usage_text: Optional[str] = None


def _to_window(
    window: Optional[Dict[str, Any]], label: str, window_minutes: int
) -> Optional[UsageWindow]:
    if window is None:
        return None
    return UsageWindow(
        label=label,
        used_percent=first_number(window, ("utilization",)),
        window_minutes=window_minutes,
        resets_at=parse_iso_datetime(window.get("resets_at")),
    )


# =============================================================================
# OAUTH
# =============================================================================


async def fetch_oauth_usage(
    client: httpx.AsyncClient, access_token: str
) -> ClaudeUsage:
    """
    Fetch usage from the OAuth usage endpoint.

    Raises:
        TransientFetchError: On transport failure, non-2xx status or bad body
    """
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
        "Content-Type": "application/json",
        "anthropic-beta": CLAUDE_OAUTH_BETA_HEADER,
        "User-Agent": USER_AGENT,
    }
    try:
        response = await client.get(CLAUDE_OAUTH_USAGE_URL, headers=headers)
    except httpx.RequestError as e:
        raise TransientFetchError(f"Claude OAuth API request failed: {e}") from e

    data = read_json_object(response, "Claude OAuth API failed ({status}).")
    return ClaudeUsage(
        primary=_to_window(
            first_child(data, ("five_hour",)), SESSION_LABEL, SESSION_WINDOW_MINUTES
        ),
        secondary=_to_window(
            first_child(data, ("seven_day",)), WEEKLY_LABEL, WEEKLY_WINDOW_MINUTES
        ),
    )


# =============================================================================
# WEB
# =============================================================================


class ClaudeWebApiFetcher:
    """
    Cookie-authenticated claude.ai client.

    Call sequence:
        /organizations                            (required)
        /organizations/{id}/usage                 (required)
        /account                                  (optional, email)
        /organizations/{id}/overage_spend_limit   (optional, extra usage)
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str = CLAUDE_WEB_API_BASE):
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def fetch(self, cookie_header: str) -> ClaudeUsage:
        """
        Fetch usage with the sessionKey cookie from a browser cookie header.

        Raises:
            TransientFetchError: If the cookie is missing or a required call fails
        """
        session_key = find_cookie(cookie_header, "sessionKey")
        if not session_key:
            raise TransientFetchError("Claude sessionKey cookie missing.")

        org_id = await self._fetch_organization_id(session_key)
        usage = await self._fetch_usage(session_key, org_id)
        email = await self._fetch_account_email(session_key)
        extra_usage = await self._fetch_extra_usage(session_key, org_id)

        return ClaudeUsage(
            primary=usage.primary,
            secondary=usage.secondary,
            account_email=email,
            extra_usage_text=extra_usage,
        )

    async def _get(self, path: str, session_key: str) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = {
            "Cookie": f"sessionKey={session_key}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        lib_logger.debug(f"GET {url}")
        try:
            return await self._client.get(url, headers=headers)
        except httpx.RequestError as e:
            raise TransientFetchError(f"Claude web request failed: {e}") from e

    async def _fetch_organization_id(self, session_key: str) -> str:
        response = await self._get("/organizations", session_key)
        if not response.is_success:
            raise TransientFetchError(
                f"Claude org lookup failed ({response.status_code}).",
                status_code=response.status_code,
            )
        try:
            orgs = response.json()
        except ValueError as e:
            raise TransientFetchError("Claude org lookup returned invalid JSON.") from e

        selected = select_organization(orgs if isinstance(orgs, list) else [])
        org_id = first_str(selected, ("uuid",))
        if not org_id:
            raise TransientFetchError("No Claude organization found.")
        return org_id

    async def _fetch_usage(self, session_key: str, org_id: str) -> ClaudeUsage:
        response = await self._get(f"/organizations/{org_id}/usage", session_key)
        data = read_json_object(response, "Claude usage failed ({status}).")

        five_hour = first_child(data, ("five_hour",)) or {}
        session = UsageWindow(
            label=SESSION_LABEL,
            used_percent=first_number(five_hour, ("utilization",)) or 0.0,
            window_minutes=SESSION_WINDOW_MINUTES,
            resets_at=parse_iso_datetime(five_hour.get("resets_at")),
        )

        weekly = None
        seven_day = first_child(data, ("seven_day",))
        weekly_used = first_number(seven_day, ("utilization",))
        if weekly_used is not None:
            weekly = UsageWindow(
                label=WEEKLY_LABEL,
                used_percent=weekly_used,
                window_minutes=WEEKLY_WINDOW_MINUTES,
                resets_at=parse_iso_datetime(seven_day.get("resets_at")),
            )
        return ClaudeUsage(primary=session, secondary=weekly)

    async def _fetch_account_email(self, session_key: str) -> Optional[str]:
        try:
            response = await self._get("/account", session_key)
        except TransientFetchError as e:
            lib_logger.debug(f"Claude account lookup skipped: {e}")
            return None
        if not response.is_success:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        return first_str(data, ("email_address",))

    async def _fetch_extra_usage(self, session_key: str, org_id: str) -> Optional[str]:
        try:
            response = await self._get(
                f"/organizations/{org_id}/overage_spend_limit", session_key
            )
        except TransientFetchError as e:
            lib_logger.debug(f"Claude extra usage lookup skipped: {e}")
            return None
        if not response.is_success:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        return format_extra_usage(data)


def select_organization(orgs: List[Any]) -> Optional[Dict[str, Any]]:
    """
    Pick the organization whose usage to report.

    Prefers one with the chat capability, then one without the api
    capability, then the first.
    """
    candidates = [org for org in orgs if isinstance(org, dict)]

    def capabilities(org: Dict[str, Any]) -> List[str]:
        caps = org.get("capabilities")
        if not isinstance(caps, list):
            return []
        return [c.lower() for c in caps if isinstance(c, str)]

    for org in candidates:
        if "chat" in capabilities(org):
            return org
    for org in candidates:
        if "api" not in capabilities(org):
            return org
    return candidates[0] if candidates else None


def format_extra_usage(data: Any) -> Optional[str]:
    """Render an enabled overage spend limit; amounts are in cents."""
    if first_bool(data, ("is_enabled",)) is not True:
        return None
    used = first_number(data, ("used_credits",))
    limit = first_number(data, ("monthly_credit_limit",))
    currency = first_str(data, ("currency",))
    if used is None or limit is None or not currency:
        return None
    return f"Extra usage: {format_amount(used / 100)}/{format_amount(limit / 100)} {currency}"
