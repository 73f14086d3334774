# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Change detection for local usage logs.

Polls the size and mtime of every *.jsonl file under the log roots. Once a
change has been seen and the files have then stayed quiet for the debounce
period, the callback runs once, so a burst of appends triggers one refresh.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.constants import LIB_LOGGER_NAME, LOG_WATCH_DEBOUNCE, LOG_WATCH_POLL_INTERVAL
from .scanner import discover_log_files

lib_logger = logging.getLogger(LIB_LOGGER_NAME)

FileSignatures = Dict[str, Tuple[int, int]]


def snapshot_log_files(roots: Iterable[str]) -> FileSignatures:
    """Map every log file under roots to its (size, mtime_ns)."""
    signatures: FileSignatures = {}
    for root in roots:
        try:
            files = discover_log_files(Path(root))
        except OSError as e:
            lib_logger.debug(f"Cannot list log root {root}: {e}")
            continue
        for path in files:
            try:
                stat_result = path.stat()
            except OSError:
                continue
            signatures[str(path)] = (stat_result.st_size, stat_result.st_mtime_ns)
    return signatures


class LogChangeWatcher:
    """Debounced polling watcher over a fixed set of log roots."""

    def __init__(
        self,
        roots: Iterable[str],
        on_change: Callable[[], Awaitable[object]],
        poll_interval: float = LOG_WATCH_POLL_INTERVAL,
        debounce: float = LOG_WATCH_DEBOUNCE,
    ):
        self.roots: List[str] = list(roots)
        self._on_change = on_change
        self._poll_interval = poll_interval
        self._debounce = debounce
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        baseline = await asyncio.to_thread(snapshot_log_files, self.roots)
        self._task = asyncio.create_task(self._run(baseline))
        lib_logger.debug(f"Watching {len(self.roots)} log root(s) for changes")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self, previous: FileSignatures) -> None:
        loop = asyncio.get_running_loop()
        changed_at: Optional[float] = None

        while True:
            await asyncio.sleep(self._poll_interval)
            current = await asyncio.to_thread(snapshot_log_files, self.roots)
            if current != previous:
                previous = current
                changed_at = loop.time()
                continue
            if changed_at is None or loop.time() - changed_at < self._debounce:
                continue

            changed_at = None
            lib_logger.debug("Log files changed, refreshing")
            try:
                await self._on_change()
            except Exception as e:
                lib_logger.error(f"Refresh after log change failed: {e}")
