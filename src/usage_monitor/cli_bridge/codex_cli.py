# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Codex CLI bridge.

Tries the structured app-server JSON-RPC interface first and falls back to
driving the interactive TUI with /status and scraping its output.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from ..core.constants import (
    CODEX_EXECUTABLE,
    CODEX_INTERACTIVE_COMMAND,
    CODEX_INTERACTIVE_TIMEOUT,
    CODEX_RPC_ARGS,
    LIB_LOGGER_NAME,
    RPC_CLIENT_NAME,
    RPC_CLIENT_VERSION,
    RPC_REQUEST_TIMEOUT,
)
from ..core.errors import ProcessError
from ..core.types import UsageWindow
from ..providers.utilities.shared_utils import (
    first_child,
    first_number,
    first_str,
    format_credits,
    parse_timestamp,
)
from ..usage.windows import SESSION_LABEL, WEEKLY_LABEL
from .process import run_interactive
from .rpc_client import JsonRpcProcessClient
from .scraping import CliUsage, scrape_usage

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

RPC_SOURCE_LABEL = "codex-cli"
INTERACTIVE_SOURCE_LABEL = "codex-pty"

SESSION_LABELS = ("5h", "5 h", "5-hour", "5 hour")
WEEKLY_LABELS = ("weekly", "week")

# Field aliases seen across app-server versions
_PRIMARY_KEYS = ("primary_window", "primaryWindow", "primary")
_SECONDARY_KEYS = ("secondary_window", "secondaryWindow", "secondary")
_USED_KEYS = ("used_percent", "usedPercent", "utilization")
_RESET_KEYS = ("reset_at", "resetAt", "resets_at", "resetsAt")
_WINDOW_SECONDS_KEYS = ("limit_window_seconds", "window_seconds", "windowSeconds")
_WINDOW_MINUTES_KEYS = ("windowDurationMins", "window_minutes", "windowMinutes")
_EMAIL_KEYS = ("email", "user_email", "userEmail")
_PLAN_KEYS = ("plan", "plan_type", "planType", "account_plan")


def parse_rate_window(
    container: Optional[Dict[str, Any]], keys: Sequence[str], label: str
) -> Optional[UsageWindow]:
    window = first_child(container, keys)
    if window is None:
        return None

    window_minutes = None
    seconds = first_number(window, _WINDOW_SECONDS_KEYS)
    if seconds is not None:
        window_minutes = int(seconds // 60)
    else:
        minutes = first_number(window, _WINDOW_MINUTES_KEYS)
        if minutes is not None:
            window_minutes = int(minutes)

    reset_value = None
    for key in _RESET_KEYS:
        if window.get(key) is not None:
            reset_value = window[key]
            break

    return UsageWindow(
        label=label,
        used_percent=first_number(window, _USED_KEYS),
        window_minutes=window_minutes,
        resets_at=parse_timestamp(reset_value),
    )


def parse_rpc_usage(
    account_result: Dict[str, Any], rate_limits_result: Dict[str, Any]
) -> CliUsage:
    """Map account/read and account/rateLimits/read results to usage."""
    account = first_child(account_result, ("account",)) or account_result
    limits = first_child(rate_limits_result, ("rateLimits", "rate_limits")) or rate_limits_result

    credits = first_child(limits, ("credits",)) or first_child(
        rate_limits_result, ("credits",)
    )

    return CliUsage(
        source_label=RPC_SOURCE_LABEL,
        primary=parse_rate_window(limits, _PRIMARY_KEYS, SESSION_LABEL),
        secondary=parse_rate_window(limits, _SECONDARY_KEYS, WEEKLY_LABEL),
        credits_text=format_credits(credits),
        account_email=first_str(account, _EMAIL_KEYS),
        account_plan=first_str(account, _PLAN_KEYS),
    )


class CodexCliFetcher:
    """Reads Codex usage through the codex executable."""

    def __init__(
        self,
        executable: str = CODEX_EXECUTABLE,
        rpc_args: Sequence[str] = CODEX_RPC_ARGS,
        interactive_args: Sequence[str] = (),
        rpc_timeout: float = RPC_REQUEST_TIMEOUT,
        interactive_timeout: float = CODEX_INTERACTIVE_TIMEOUT,
    ):
        self.executable = executable
        self.rpc_args = tuple(rpc_args)
        self.interactive_args = tuple(interactive_args)
        self.rpc_timeout = rpc_timeout
        self.interactive_timeout = interactive_timeout

    async def fetch(self) -> Optional[CliUsage]:
        """
        Fetch usage, structured interface first.

        Returns:
            CliUsage, or None when neither interface produced usage

        Raises:
            ProcessError: If the interactive fallback cannot run
        """
        try:
            usage = await self.fetch_via_rpc()
            if usage.has_usage:
                return usage
            lib_logger.debug("Codex app-server returned no rate limits")
        except ProcessError as e:
            lib_logger.debug(f"Codex app-server unavailable, falling back to /status: {e}")

        return await self.fetch_via_interactive()

    async def fetch_via_rpc(self) -> CliUsage:
        """
        Raises:
            ProcessError: On spawn failure, timeout or an RPC error
        """
        async with JsonRpcProcessClient(
            self.executable, self.rpc_args, request_timeout=self.rpc_timeout
        ) as client:
            await client.request(
                1,
                "initialize",
                {"clientInfo": {"name": RPC_CLIENT_NAME, "version": RPC_CLIENT_VERSION},
                 "client": {"name": RPC_CLIENT_NAME, "version": RPC_CLIENT_VERSION}},
            )
            await client.notify("initialized")
            account = await client.request(2, "account/read")
            rate_limits = await client.request(3, "account/rateLimits/read")

        return parse_rpc_usage(account, rate_limits)

    async def fetch_via_interactive(self) -> Optional[CliUsage]:
        output = await run_interactive(
            self.executable,
            self.interactive_args,
            CODEX_INTERACTIVE_COMMAND,
            self.interactive_timeout,
        )
        return scrape_usage(output, INTERACTIVE_SOURCE_LABEL, SESSION_LABELS, WEEKLY_LABELS)
