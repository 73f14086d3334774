# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Claude CLI bridge: runs /usage in the interactive CLI and scrapes the output.
"""

import logging
from typing import Optional, Sequence

from ..core.constants import (
    CLAUDE_EXECUTABLE,
    CLAUDE_INTERACTIVE_ARGS,
    CLAUDE_INTERACTIVE_COMMAND,
    CLAUDE_INTERACTIVE_TIMEOUT,
    LIB_LOGGER_NAME,
)
from .process import run_interactive
from .scraping import CliUsage, scrape_usage

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

SOURCE_LABEL = "claude-cli"

SESSION_LABELS = ("current session", "session")
WEEKLY_LABELS = ("current week", "weekly", "week")


class ClaudeCliFetcher:
    def __init__(
        self,
        executable: str = CLAUDE_EXECUTABLE,
        args: Sequence[str] = CLAUDE_INTERACTIVE_ARGS,
        timeout: float = CLAUDE_INTERACTIVE_TIMEOUT,
    ):
        self.executable = executable
        self.args = tuple(args)
        self.timeout = timeout

    async def fetch(self) -> Optional[CliUsage]:
        """
        Returns:
            CliUsage, or None when the output holds no usage percentages

        Raises:
            ProcessError: If the executable is missing or cannot be started
        """
        output = await run_interactive(
            self.executable, self.args, CLAUDE_INTERACTIVE_COMMAND, self.timeout
        )
        if output is None:
            lib_logger.debug("Claude CLI produced no output")
        return scrape_usage(output, SOURCE_LABEL, SESSION_LABELS, WEEKLY_LABELS)
