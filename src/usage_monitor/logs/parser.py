# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Token usage extraction from local JSONL log lines.

Two line shapes carry usage:
    - a usage object, at the top level or under "message" (Claude Code
      project logs), or bare token counts on the line itself
    - Codex "event_msg" lines whose payload is a "token_count" event

Lines without a timestamp or with no positive token total are not usage.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple

from ..core.types import ProviderIdentity, UsageRecord
from ..providers.utilities.shared_utils import (
    first_child,
    first_number,
    first_str,
    parse_timestamp,
)

_TIMESTAMP_KEYS = ("timestamp", "time", "created_at", "createdAt", "created", "ts")
_SESSION_KEYS = (
    "session_id",
    "sessionId",
    "conversation_id",
    "conversationId",
    "trace_id",
    "traceId",
)
_INPUT_KEYS = ("input_tokens", "prompt_tokens", "inputTokens", "promptTokens")
_OUTPUT_KEYS = ("output_tokens", "completion_tokens", "outputTokens", "completionTokens")
_TOTAL_KEYS = ("total_tokens", "totalTokens")

TokenCounts = Tuple[int, int, int]


def _count(data: Any, keys: Tuple[str, ...]) -> int:
    value = first_number(data, keys)
    if value is None or value < 0:
        return 0
    return int(value)


def _counts(data: Any) -> TokenCounts:
    input_tokens = _count(data, _INPUT_KEYS)
    output_tokens = _count(data, _OUTPUT_KEYS)
    total_tokens = _count(data, _TOTAL_KEYS)
    if total_tokens == 0:
        total_tokens = input_tokens + output_tokens
    return input_tokens, output_tokens, total_tokens


def _usage_counts(root: Dict[str, Any]) -> Optional[TokenCounts]:
    message = first_child(root, ("message",))
    usage = first_child(root, ("usage",)) or first_child(message, ("usage",))

    counts = _counts(usage) if usage is not None else (0, 0, 0)
    if counts == (0, 0, 0):
        counts = _counts(root)
    return counts if counts[2] > 0 else None


def _token_count_event(root: Dict[str, Any]) -> Optional[TokenCounts]:
    if str(root.get("type", "")).lower() != "event_msg":
        return None
    payload = first_child(root, ("payload",))
    if payload is None or str(payload.get("type", "")).lower() != "token_count":
        return None
    usage = first_child(
        first_child(payload, ("info",)), ("last_token_usage", "total_token_usage")
    )
    if usage is None:
        return None

    input_tokens = _count(usage, ("input_tokens",))
    output_tokens = _count(usage, ("output_tokens",))
    total_tokens = _count(usage, ("total_tokens",)) or input_tokens + output_tokens
    return (input_tokens, output_tokens, total_tokens) if total_tokens > 0 else None


def infer_provider(
    root: Dict[str, Any], hint: Optional[ProviderIdentity]
) -> Optional[ProviderIdentity]:
    """Provider named on the line, else guessed from the model, else hint."""
    provider = first_str(root, ("provider",))
    if provider:
        try:
            return ProviderIdentity(provider.strip().lower())
        except ValueError:
            pass

    model = first_str(root, ("model", "model_name")) or first_str(
        first_child(root, ("message",)), ("model",)
    )
    if model:
        model = model.lower()
        if "claude" in model:
            return ProviderIdentity.CLAUDE
        if "codex" in model or "gpt" in model or "openai" in model:
            return ProviderIdentity.CODEX
    return hint


def infer_provider_from_path(path: str) -> Optional[ProviderIdentity]:
    lowered = path.lower()
    if "claude" in lowered:
        return ProviderIdentity.CLAUDE
    if "codex" in lowered:
        return ProviderIdentity.CODEX
    return None


def parse_log_line(
    line: str,
    provider_hint: Optional[ProviderIdentity] = None,
    source_file: str = "",
) -> Optional[UsageRecord]:
    """
    Parse one JSONL line into a usage record.

    Args:
        line: Raw line without the trailing newline
        provider_hint: Provider assumed when the line does not name one
        source_file: Path recorded on the result

    Returns:
        The record, or None when the line is blank, not a JSON object or
        carries no usage
    """
    if not line or not line.strip():
        return None
    try:
        root = json.loads(line)
    except ValueError:
        return None
    if not isinstance(root, dict):
        return None

    timestamp = None
    for key in _TIMESTAMP_KEYS:
        timestamp = parse_timestamp(root.get(key))
        if timestamp is not None:
            break
    if timestamp is None:
        return None

    counts = _usage_counts(root) or _token_count_event(root)
    if counts is None:
        return None

    input_tokens, output_tokens, total_tokens = counts
    return UsageRecord(
        timestamp=timestamp,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total_tokens,
        provider=infer_provider(root, provider_hint),
        session_id=first_str(root, _SESSION_KEYS),
        source_file=source_file,
    )
