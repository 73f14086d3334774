"""Tests for the CLI bridge: output scraping, JSON-RPC and interactive runs."""

from __future__ import annotations

import asyncio
import sys
from datetime import datetime, timezone

import pytest

from usage_monitor.cli_bridge import (
    ClaudeCliFetcher,
    CodexCliFetcher,
    JsonRpcProcessClient,
    extract_percent,
    run_interactive,
    scrape_usage,
    strip_ansi,
)
from usage_monitor.cli_bridge.codex_cli import parse_rpc_usage
from usage_monitor.core.errors import ProcessError

RPC_SERVER = """
import json
import sys

FAIL_METHOD = {fail_method!r}
RESULTS = {{
    "initialize": {{"userAgent": "codex/1.0"}},
    "account/read": {{"account": {{"email": "cli@example.com", "planType": "pro"}}}},
    "account/rateLimits/read": {{
        "rateLimits": {{
            "primary": {{"usedPercent": 55, "windowDurationMins": 300, "resetsAt": 1900000000}},
            "secondary": {{"usedPercent": 20, "windowDurationMins": 10080}},
            "credits": {{"hasCredits": True, "unlimited": True}},
        }}
    }},
}}

print("codex app-server starting", flush=True)
while True:
    line = sys.stdin.readline()
    if not line:
        break
    message = json.loads(line)
    if "id" not in message:
        continue
    method = message["method"]
    print(json.dumps({{"jsonrpc": "2.0", "method": "progress"}}), flush=True)
    print(json.dumps({{"jsonrpc": "2.0", "id": 999, "result": {{}}}}), flush=True)
    if method == FAIL_METHOD:
        reply = {{"jsonrpc": "2.0", "id": message["id"], "error": {{"code": -32601, "message": "not supported"}}}}
    else:
        reply = {{"jsonrpc": "2.0", "id": message["id"], "result": RESULTS[method]}}
    print(json.dumps(reply), flush=True)
"""

STATUS_TUI = """
import sys

sys.stdin.readline()
sys.stdout.write("\\x1b[1m5h limit:\\x1b[0m [####----] 42% used\\r\\n")
sys.stdout.write("Weekly limit: [#-------] 80% left\\n")
sys.stdout.flush()
"""

HANGING_USAGE_TUI = """
import sys
import time

sys.stdin.readline()
print("Current session", flush=True)
print("  [###-------] 12% used", flush=True)
print("Current week (all models)", flush=True)
print("  [######----] 64% used", flush=True)
time.sleep(60)
"""

UNTERMINATED_USAGE_TUI = """
import sys
import time

sys.stdin.readline()
sys.stdout.write("Current session\\n  [###-------] 30% used\\n")
sys.stdout.write("Current week (all models)\\n  [#####-----] 55% used")
sys.stdout.flush()
time.sleep(60)
"""


# =============================================================================
# SCRAPING
# =============================================================================


def test_strip_ansi() -> None:
    assert strip_ansi("\x1b[1;32mSession\x1b[0m 10%\r") == "Session 10%"
    assert strip_ansi("\x1b]0;title\x07plain") == "plain"


@pytest.mark.parametrize(
    ("text", "labels", "expected"),
    [
        ("Session: 37% used", ("session",), 37.0),
        ("5h limit: [###] 80% left", ("5h",), 20.0),
        ("Weekly 30% remaining", ("weekly",), 70.0),
        ("Overall 90% remaining", ("weekly",), 10.0),
        ("session 150%", ("session",), 100.0),
        ("no numbers here", ("session",), None),
    ],
)
def test_extract_percent(text: str, labels: tuple[str, ...], expected: float | None) -> None:
    assert extract_percent(text, labels) == expected


def test_scrape_usage() -> None:
    usage = scrape_usage(
        "\x1b[2mCurrent session\x1b[0m\n 5% used\nCurrent week\n 61% used",
        "claude-cli",
        ("current session",),
        ("current week",),
    )

    assert usage is not None
    assert usage.source_label == "claude-cli"
    assert usage.primary.label == "Session"
    assert usage.primary.used_percent == 5
    assert usage.secondary.label == "Weekly"
    assert usage.secondary.used_percent == 61


def test_scrape_usage_without_percentages() -> None:
    assert scrape_usage(None, "x", ("session",), ("week",)) is None
    assert scrape_usage("Please log in", "x", ("session",), ("week",)) is None


def test_parse_rpc_usage_accepts_snake_case() -> None:
    usage = parse_rpc_usage(
        {"email": "a@example.com", "plan_type": "team"},
        {"rate_limits": {"primary_window": {"used_percent": "33", "limit_window_seconds": 18000}}},
    )

    assert usage.account_email == "a@example.com"
    assert usage.account_plan == "team"
    assert usage.primary.used_percent == 33
    assert usage.primary.window_minutes == 300
    assert usage.secondary is None
    assert usage.credits_text is None


# =============================================================================
# PROCESSES
# =============================================================================


def test_codex_rpc_fetch(write_script) -> None:
    """The app-server handshake yields account and rate-limit data."""
    argv = write_script("rpc_server", RPC_SERVER.format(fail_method=None))
    fetcher = CodexCliFetcher(executable=argv[0], rpc_args=argv[1:], rpc_timeout=10)

    usage = asyncio.run(fetcher.fetch())

    assert usage.source_label == "codex-cli"
    assert usage.account_email == "cli@example.com"
    assert usage.account_plan == "pro"
    assert usage.primary.used_percent == 55
    assert usage.primary.window_minutes == 300
    assert usage.primary.resets_at == datetime.fromtimestamp(1900000000, tz=timezone.utc)
    assert usage.secondary.used_percent == 20
    assert usage.credits_text == "Credits: Unlimited"


def test_codex_falls_back_to_interactive_status(write_script) -> None:
    """An RPC error sends the fetcher to the /status screen."""
    rpc = write_script("rpc_server", RPC_SERVER.format(fail_method="account/rateLimits/read"))
    tui = write_script("status_tui", STATUS_TUI)
    fetcher = CodexCliFetcher(
        executable=sys.executable,
        rpc_args=rpc[1:],
        interactive_args=tui[1:],
        rpc_timeout=10,
        interactive_timeout=10,
    )

    usage = asyncio.run(fetcher.fetch())

    assert usage.source_label == "codex-pty"
    assert usage.primary.used_percent == 42
    assert usage.secondary.used_percent == 20


def test_rpc_request_times_out(write_script) -> None:
    argv = write_script("silent", "import time\ntime.sleep(60)\n")

    async def run() -> None:
        async with JsonRpcProcessClient(argv[0], argv[1:], request_timeout=0.5) as client:
            await client.request(1, "initialize")

    with pytest.raises(ProcessError, match="timed out"):
        asyncio.run(run())


def test_rpc_process_exit_is_an_error(write_script) -> None:
    argv = write_script("quitter", "print('bye')\n")

    async def run() -> None:
        async with JsonRpcProcessClient(argv[0], argv[1:], request_timeout=10) as client:
            await client.request(1, "initialize")

    with pytest.raises(ProcessError):
        asyncio.run(run())


def test_interactive_run_stops_at_timeout(write_script) -> None:
    """A CLI that never exits is killed and its partial output is used."""
    argv = write_script("usage_tui", HANGING_USAGE_TUI)
    fetcher = ClaudeCliFetcher(executable=argv[0], args=argv[1:], timeout=2.0)

    usage = asyncio.run(fetcher.fetch())

    assert usage is not None
    assert usage.source_label == "claude-cli"
    assert usage.primary.used_percent == 12
    assert usage.secondary.used_percent == 64


def test_interactive_run_keeps_unterminated_last_line(write_script) -> None:
    """Output still buffered without a newline at the timeout is not lost."""
    argv = write_script("unterminated_tui", UNTERMINATED_USAGE_TUI)

    output = asyncio.run(run_interactive(argv[0], argv[1:], "/usage\n", 1.5))

    assert output is not None
    assert output.splitlines()[-1] == "  [#####-----] 55% used"

    usage = asyncio.run(ClaudeCliFetcher(executable=argv[0], args=argv[1:], timeout=1.5).fetch())

    assert usage is not None
    assert usage.primary.used_percent == 30
    assert usage.secondary.used_percent == 55


def test_missing_executable() -> None:
    fetcher = CodexCliFetcher(executable="usage-monitor-no-such-binary")

    with pytest.raises(ProcessError, match="usage-monitor-no-such-binary executable not found."):
        asyncio.run(fetcher.fetch())
