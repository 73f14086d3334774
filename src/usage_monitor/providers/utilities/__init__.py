# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# Utilities for provider implementations
from .shared_utils import (
    decode_jwt_payload,
    find_cookie,
    first_child,
    first_number,
    first_str,
    parse_cookie_header,
)
from .codex_credentials import CodexCredentials, CodexCredentialStore, needs_refresh
from .claude_credentials import ClaudeCredentials, ClaudeCredentialStore

__all__ = [
    "decode_jwt_payload",
    "find_cookie",
    "first_child",
    "first_number",
    "first_str",
    "parse_cookie_header",
    "CodexCredentials",
    "CodexCredentialStore",
    "needs_refresh",
    "ClaudeCredentials",
    "ClaudeCredentialStore",
]
