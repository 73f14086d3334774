# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# Local JSONL usage log scanning
from .parser import parse_log_line
from .cache import CacheStore, FileCacheEntry, ScanCache
from .scanner import LogScanner, discover_log_files, scan_file, summarize
from .watcher import LogChangeWatcher, snapshot_log_files

__all__ = [
    "parse_log_line",
    "CacheStore",
    "FileCacheEntry",
    "ScanCache",
    "LogScanner",
    "discover_log_files",
    "scan_file",
    "summarize",
    "LogChangeWatcher",
    "snapshot_log_files",
]
