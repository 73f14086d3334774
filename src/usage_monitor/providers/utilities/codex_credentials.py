# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/usage_monitor/providers/utilities/codex_credentials.py
"""
Codex (ChatGPT) OAuth credential store and token refresher.

Credentials live in the Codex CLI's own auth.json. They are re-read from disk
on every fetch so a login performed with the CLI is picked up immediately;
nothing is cached across refresh cycles.

auth.json shapes understood:
    {"OPENAI_API_KEY": "sk-..."}
    {"last_refresh": "<ISO-8601>",
     "tokens": {"access_token", "refresh_token", "id_token", "account_id"}}
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import stat
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

import httpx

from ...core.config import resolve_codex_home
from ...core.constants import (
    CODEX_AUTH_FILE_NAME,
    CODEX_CLIENT_ID,
    CODEX_REFRESH_ENDPOINT,
    CODEX_REFRESH_SCOPE,
    LIB_LOGGER_NAME,
    REFRESH_STALENESS,
)
from ...core.errors import AuthExpiredError, TransientFetchError, mask_credential
from .shared_utils import decode_jwt_payload, first_child, first_str, parse_iso_datetime

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

_PROFILE_CLAIM = "https://api.openai.com/profile"
_AUTH_CLAIM = "https://api.openai.com/auth"


@dataclass(frozen=True)
class CodexCredentials:
    """OAuth material read from auth.json."""

    access_token: str
    refresh_token: str = ""
    id_token: Optional[str] = None
    account_id: Optional[str] = None
    last_refresh: Optional[datetime] = None


def needs_refresh(credentials: CodexCredentials, now: Optional[datetime] = None) -> bool:
    """
    True when the access token should be refreshed before use.

    Tokens without a recorded refresh time, or refreshed more than
    REFRESH_STALENESS ago, are stale.
    """
    if credentials.last_refresh is None:
        return True
    if now is None:
        now = datetime.now(timezone.utc)
    return now - credentials.last_refresh > REFRESH_STALENESS


# =============================================================================
# IDENTITY
# =============================================================================


def resolve_email(credentials: CodexCredentials) -> Optional[str]:
    """Account email from the id token claims, if present."""
    claims = decode_jwt_payload(credentials.id_token)
    if claims is None:
        return None
    email = first_str(claims, ("email",))
    if email:
        return email
    return first_str(first_child(claims, (_PROFILE_CLAIM,)), ("email",))


def resolve_plan(
    credentials: CodexCredentials, usage_plan: Optional[str] = None
) -> Optional[str]:
    """Plan name: the usage response wins, then the id token claims."""
    if usage_plan and usage_plan.strip():
        return usage_plan
    claims = decode_jwt_payload(credentials.id_token)
    if claims is None:
        return None
    plan = first_str(claims, ("chatgpt_plan_type",))
    if plan:
        return plan
    return first_str(first_child(claims, (_AUTH_CLAIM,)), ("chatgpt_plan_type",))


# =============================================================================
# STORE
# =============================================================================


class CodexCredentialStore:
    """
    Load, save and refresh Codex OAuth credentials.

    ensure_fresh() is single-flight per store instance: concurrent callers
    queue on one lock and the later ones see the already refreshed file.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path is not None else None
        self._refresh_lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        if self._path is not None:
            return self._path
        return resolve_codex_home() / CODEX_AUTH_FILE_NAME

    def load(self) -> Optional[CodexCredentials]:
        """
        Read credentials from disk.

        Returns:
            Credentials, or None when the file is absent, blank, malformed
            or holds no access token
        """
        path = self.path
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
            if not text.strip():
                return None
            data = json.loads(text)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            lib_logger.warning(f"Could not read Codex credentials from {path}: {e}")
            return None

        if not isinstance(data, dict):
            return None

        api_key = first_str(data, ("OPENAI_API_KEY",))
        if api_key:
            return CodexCredentials(access_token=api_key.strip())

        tokens = first_child(data, ("tokens",))
        access_token = first_str(tokens, ("access_token",))
        if not access_token:
            return None

        return CodexCredentials(
            access_token=access_token,
            refresh_token=first_str(tokens, ("refresh_token",)) or "",
            id_token=first_str(tokens, ("id_token",)),
            account_id=first_str(tokens, ("account_id",)),
            last_refresh=parse_iso_datetime(data.get("last_refresh")),
        )

    def save(self, credentials: CodexCredentials) -> None:
        """
        Persist credentials, preserving unrelated keys already in the file.

        The write goes to a temp file that atomically replaces auth.json.
        """
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)

        existing: Dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    existing = loaded
            except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
                lib_logger.debug(f"Overwriting unreadable {path}: {e}")

        tokens = existing.get("tokens")
        if not isinstance(tokens, dict):
            tokens = {}
        tokens["access_token"] = credentials.access_token
        tokens["refresh_token"] = credentials.refresh_token
        for key, value in (
            ("id_token", credentials.id_token),
            ("account_id", credentials.account_id),
        ):
            if value:
                tokens[key] = value
            else:
                tokens.pop(key, None)
        existing["tokens"] = tokens
        last_refresh = credentials.last_refresh or datetime.now(timezone.utc)
        existing["last_refresh"] = last_refresh.isoformat()

        # Tokens must not become readable by others through the temp file
        mode = 0o600
        if path.exists():
            mode = stat.S_IMODE(path.stat().st_mode)

        temp_path = path.with_suffix(".tmp")
        try:
            fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(existing, f, indent=2)
            os.chmod(temp_path, mode)
            temp_path.replace(path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

        lib_logger.debug(f"Saved Codex credentials to {path}")

    async def refresh(
        self, credentials: CodexCredentials, client: httpx.AsyncClient
    ) -> CodexCredentials:
        """
        Exchange the refresh token for new tokens.

        Fields missing from the response keep their previous values.

        Raises:
            AuthExpiredError: The refresh token was rejected (HTTP 401)
            TransientFetchError: Any other HTTP, transport or decode failure
        """
        payload = {
            "client_id": CODEX_CLIENT_ID,
            "grant_type": "refresh_token",
            "refresh_token": credentials.refresh_token,
            "scope": CODEX_REFRESH_SCOPE,
        }
        lib_logger.debug(
            f"Refreshing Codex token {mask_credential(credentials.refresh_token)}"
        )

        try:
            response = await client.post(CODEX_REFRESH_ENDPOINT, json=payload)
        except httpx.RequestError as e:
            raise TransientFetchError(f"Codex token refresh failed: {e}") from e

        if response.status_code == 401:
            raise AuthExpiredError(
                "Codex refresh token expired. Run `codex` to log in again."
            )
        if not response.is_success:
            raise TransientFetchError(
                f"Codex token refresh failed ({response.status_code}).",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientFetchError("Codex token refresh returned invalid JSON.") from e
        if not isinstance(data, dict):
            data = {}

        return replace(
            credentials,
            access_token=first_str(data, ("access_token",)) or credentials.access_token,
            refresh_token=first_str(data, ("refresh_token",)) or credentials.refresh_token,
            id_token=first_str(data, ("id_token",)) or credentials.id_token,
            last_refresh=datetime.now(timezone.utc),
        )

    async def ensure_fresh(
        self, client: httpx.AsyncClient
    ) -> Optional[CodexCredentials]:
        """
        Load credentials, refreshing and persisting them first if stale.

        The file is re-read under the lock so a refresh completed by a
        concurrent caller is reused instead of repeated.

        Returns:
            Usable credentials, or None when there are none on disk
        """
        async with self._refresh_lock:
            credentials = await asyncio.to_thread(self.load)
            if credentials is None:
                return None
            if not needs_refresh(credentials) or not credentials.refresh_token:
                return credentials

            refreshed = await self.refresh(credentials, client)
            await asyncio.to_thread(self.save, refreshed)
            lib_logger.info("Refreshed Codex OAuth token")
            return refreshed
