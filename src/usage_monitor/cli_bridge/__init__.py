# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
CLI bridge package.

Reads usage through the providers' own command-line tools:
- rpc_client: JSON-RPC 2.0 over a child's stdio
- process: spawn, interactive drive and process-tree kill
- scraping: ANSI stripping and percentage extraction
- codex_cli / claude_cli: per-tool fetchers
"""

from .scraping import CliUsage, extract_percent, scrape_usage, strip_ansi
from .process import kill_process_tree, run_interactive, spawn
from .rpc_client import JsonRpcProcessClient
from .codex_cli import CodexCliFetcher
from .claude_cli import ClaudeCliFetcher

__all__ = [
    "CliUsage",
    "extract_percent",
    "scrape_usage",
    "strip_ansi",
    "kill_process_tree",
    "run_interactive",
    "spawn",
    "JsonRpcProcessClient",
    "CodexCliFetcher",
    "ClaudeCliFetcher",
]
