# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/usage_monitor/providers/utilities/shared_utils.py
"""
Shared decoding helpers for provider sources.

Usage payloads from the different sources name the same field several ways
(snake_case, camelCase, nested or flat). The alias lookups below take a list
of candidate keys and return the first one that is present with a usable
value, so each source describes its shape declaratively.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from ...core.constants import LIB_LOGGER_NAME
from ...core.errors import TransientFetchError

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


# =============================================================================
# ALIAS LOOKUPS
# =============================================================================


def first_child(data: Any, keys: Iterable[str]) -> Optional[Dict[str, Any]]:
    """Return the first value under any of keys that is a JSON object."""
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if isinstance(value, dict):
            return value
    return None


def first_str(data: Any, keys: Iterable[str]) -> Optional[str]:
    """Return the first non-blank string value under any of keys."""
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def first_number(data: Any, keys: Iterable[str]) -> Optional[float]:
    """
    Return the first numeric value under any of keys.

    Numeric strings are accepted; booleans are not numbers here.
    """
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                continue
    return None


def first_bool(data: Any, keys: Iterable[str]) -> Optional[bool]:
    if not isinstance(data, dict):
        return None
    for key in keys:
        value = data.get(key)
        if isinstance(value, bool):
            return value
    return None


# =============================================================================
# TIME
# =============================================================================


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z'. Naive values are assumed to be UTC.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        lib_logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def datetime_from_epoch(value: Optional[float]) -> Optional[datetime]:
    """
    Convert an epoch timestamp to an aware UTC datetime.

    Values too large to be seconds are treated as milliseconds.
    """
    if value is None or value <= 0:
        return None
    if value > 1e11:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse either an epoch number or an ISO-8601 string."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime_from_epoch(float(value))
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return datetime_from_epoch(float(stripped))
        except ValueError:
            return parse_iso_datetime(stripped)
    return None


# =============================================================================
# JWT
# =============================================================================


def decode_jwt_payload(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode the claims segment of a JWT without verifying its signature.

    Args:
        token: Encoded JWT (header.payload.signature)

    Returns:
        Claims dict, or None if the token is not a decodable JWT
    """
    if not token:
        return None
    parts = token.split(".")
    if len(parts) < 2:
        return None

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        decoded = base64.urlsafe_b64decode(payload.encode("ascii"))
        claims = json.loads(decoded)
    except (ValueError, UnicodeError) as e:
        lib_logger.debug(f"Could not decode JWT payload: {e}")
        return None
    return claims if isinstance(claims, dict) else None


# =============================================================================
# COOKIES
# =============================================================================


def parse_cookie_header(header: Optional[str]) -> List[Tuple[str, str]]:
    """
    Split a browser cookie header into (name, value) pairs.

    Pairs with an empty name or value are dropped.
    """
    if not header:
        return []
    cookies = []
    for part in header.split(";"):
        name, sep, value = part.strip().partition("=")
        if not sep:
            continue
        name, value = name.strip(), value.strip()
        if name and value:
            cookies.append((name, value))
    return cookies


def find_cookie(header: Optional[str], name: str) -> Optional[str]:
    """Case-insensitive cookie lookup in a cookie header."""
    wanted = name.lower()
    for cookie_name, value in parse_cookie_header(header):
        if cookie_name.lower() == wanted:
            return value
    return None


# =============================================================================
# USAGE FORMATTING
# =============================================================================


def format_amount(value: float) -> str:
    """Format with at most two decimals and no trailing zeros."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def format_credits(credits: Any) -> Optional[str]:
    """
    Render a credits object as display text.

    Returns:
        "Credits: Unlimited", "Credits: {balance}", "Credits: Available",
        or None when there is nothing to show
    """
    if not isinstance(credits, dict):
        return None
    if first_bool(credits, ("has_credits", "hasCredits")) is False:
        return None
    if first_bool(credits, ("unlimited",)):
        return "Credits: Unlimited"
    balance = first_number(credits, ("balance", "remaining"))
    if balance is not None:
        return f"Credits: {format_amount(balance)}"
    if first_bool(credits, ("has_credits", "hasCredits")):
        return "Credits: Available"
    return None


# =============================================================================
# HTTP
# =============================================================================


def read_json_object(response: httpx.Response, failure_message: str) -> Dict[str, Any]:
    """
    Decode a successful JSON object response.

    Args:
        response: HTTP response
        failure_message: Message template with a {status} placeholder

    Raises:
        TransientFetchError: On a non-2xx status or a body that is not a JSON object
    """
    if not response.is_success:
        raise TransientFetchError(
            failure_message.format(status=response.status_code),
            status_code=response.status_code,
        )
    try:
        data = response.json()
    except ValueError as e:
        raise TransientFetchError(failure_message.format(status="invalid JSON")) from e
    if not isinstance(data, dict):
        raise TransientFetchError(failure_message.format(status="unexpected body"))
    return data
