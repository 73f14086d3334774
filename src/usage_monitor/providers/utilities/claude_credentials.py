# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/usage_monitor/providers/utilities/claude_credentials.py
"""
Claude OAuth credential store (read-only).

Reads the token bundle Claude Code keeps in .credentials.json. The monitor
never refreshes Claude tokens itself: an expired bundle means the OAuth
source has nothing to offer until the CLI refreshes it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple, Union

from ...core.config import resolve_claude_config_dir
from ...core.constants import CLAUDE_CREDENTIALS_FILE_NAME, LIB_LOGGER_NAME
from .shared_utils import datetime_from_epoch, first_child, first_number, first_str

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


@dataclass(frozen=True)
class ClaudeCredentials:
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Tuple[str, ...] = field(default_factory=tuple)
    rate_limit_tier: Optional[str] = None
    subscription_type: Optional[str] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        return self.expires_at <= now

    @property
    def plan(self) -> Optional[str]:
        return self.subscription_type or self.rate_limit_tier


class ClaudeCredentialStore:
    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path is not None else None

    @property
    def path(self) -> Path:
        if self._path is not None:
            return self._path
        return resolve_claude_config_dir() / CLAUDE_CREDENTIALS_FILE_NAME

    def load(self) -> Optional[ClaudeCredentials]:
        """
        Read the OAuth bundle from disk.

        Returns:
            Credentials, or None when the file is absent, malformed or has
            no access token
        """
        path = self.path
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            lib_logger.warning(f"Could not read Claude credentials from {path}: {e}")
            return None

        oauth = first_child(data, ("claudeAiOauth", "claude_ai_oauth"))
        access_token = first_str(oauth, ("accessToken",))
        if not access_token:
            return None

        raw_scopes = oauth.get("scopes")
        scopes = (
            tuple(s for s in raw_scopes if isinstance(s, str) and s.strip())
            if isinstance(raw_scopes, list)
            else ()
        )
        expires_at = first_number(oauth, ("expiresAt",))

        return ClaudeCredentials(
            access_token=access_token,
            refresh_token=first_str(oauth, ("refreshToken",)),
            expires_at=datetime_from_epoch(expires_at),
            scopes=scopes,
            rate_limit_tier=first_str(oauth, ("rateLimitTier",)),
            subscription_type=first_str(oauth, ("subscriptionType",)),
        )
