# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Local usage log scanner.

Walks every configured log root for *.jsonl files, parses only the bytes
appended since the previous scan, and folds the results into a
LocalUsageSummary: per-day token totals over the trailing window and the
most recently active session. Per-file failures are collected, never raised.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from ..core.constants import DAILY_TOTALS_DAYS, LIB_LOGGER_NAME, LOG_FILE_PATTERN
from ..core.types import DailyUsage, LocalUsageSummary, SessionUsage, utc_now
from .cache import CacheStore, FileCacheEntry, ScanCache
from .parser import infer_provider_from_path, parse_log_line

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


def discover_log_files(root: Path) -> List[Path]:
    """JSONL files under root, in sorted path order."""
    if not root.is_dir():
        return []
    return sorted(path for path in root.rglob(LOG_FILE_PATTERN) if path.is_file())


def scan_file(path: Path, entry: FileCacheEntry) -> FileCacheEntry:
    """
    Parse the unread tail of one log file.

    The given entry is left untouched; a read error therefore keeps the
    previous state and the same bytes are tried again next time.

    Returns:
        The updated cache entry
    """
    stat_result = path.stat()
    size, mtime_ns = stat_result.st_size, stat_result.st_mtime_ns

    entry = replace(entry, daily=dict(entry.daily))
    if entry.needs_rescan(size, mtime_ns):
        lib_logger.debug(f"Rescanning {path} from the start")
        entry.reset()
    if entry.is_current(size, mtime_ns):
        return entry

    provider_hint = infer_provider_from_path(str(path))
    pending = entry.incomplete_line or b""
    found = 0

    with open(path, "rb") as f:
        f.seek(entry.offset)
        for raw in f:
            data, pending = pending + raw, b""
            if not data.endswith(b"\n"):
                pending = data
                continue
            line = data.rstrip(b"\n").rstrip(b"\r").decode("utf-8", errors="replace")
            record = parse_log_line(line, provider_hint, str(path))
            if record is not None:
                # Codex writes one session per file
                entry.add(record, session_id=path.stem)
                found += 1
        entry.offset = f.tell()

    entry.size = entry.offset
    entry.mtime_ns = mtime_ns
    entry.incomplete_line = pending or None
    if found:
        lib_logger.debug(f"{found} new usage record(s) in {path}")
    return entry


def summarize(
    entries: Iterable[FileCacheEntry],
    today: date,
    days: int = DAILY_TOTALS_DAYS,
) -> LocalUsageSummary:
    """Combine cached per-file usage into daily totals and the latest session."""
    start = today - timedelta(days=days - 1)
    daily: Dict[date, DailyUsage] = {}
    last_session: Optional[SessionUsage] = None
    records = 0

    for entry in entries:
        records += entry.records
        for day, usage in entry.daily.items():
            if day < start:
                continue
            current = daily.get(day) or DailyUsage(day=day)
            daily[day] = DailyUsage(
                day=day,
                input_tokens=current.input_tokens + usage.input_tokens,
                output_tokens=current.output_tokens + usage.output_tokens,
                total_tokens=current.total_tokens + usage.total_tokens,
            )
        session = entry.last_session
        if session is not None and (
            last_session is None or session.last_activity > last_session.last_activity
        ):
            last_session = session

    return LocalUsageSummary(
        daily_totals=tuple(daily[day] for day in sorted(daily)),
        last_session=last_session,
        records_parsed=records,
    )


class LogScanner:
    """Incremental scanner over the configured log roots."""

    def __init__(self, cache_store: CacheStore):
        self._cache_store = cache_store

    @property
    def cache_store(self) -> CacheStore:
        return self._cache_store

    def scan(self, roots: Iterable[str], today: Optional[date] = None) -> LocalUsageSummary:
        """
        Scan all roots and return the combined summary.

        Missing roots are skipped. Files that cannot be read are reported in
        scan_errors and keep whatever was cached for them before.
        """
        roots = list(roots)
        if today is None:
            today = utc_now().date()

        cache: ScanCache = self._cache_store.load()
        seen: Set[str] = set()
        errors: List[str] = []
        files_scanned = 0

        for root in roots:
            try:
                files = discover_log_files(Path(root))
            except OSError as e:
                errors.append(f"{root}: {e}")
                continue

            for path in files:
                key = str(path)
                if key in seen:
                    continue
                seen.add(key)
                try:
                    cache.files[key] = scan_file(path, cache.entry(key))
                    files_scanned += 1
                except OSError as e:
                    errors.append(f"{path}: {e}")

        cache.prune(seen)
        try:
            self._cache_store.save(cache)
        except OSError as e:
            lib_logger.warning(f"Could not save scan cache {self._cache_store.path}: {e}")

        summary = summarize(cache.files.values(), today)
        lib_logger.debug(
            f"Scanned {files_scanned} log file(s), {summary.records_parsed} usage record(s)"
        )
        return LocalUsageSummary(
            daily_totals=summary.daily_totals,
            last_session=summary.last_session,
            records_parsed=summary.records_parsed,
            files_scanned=files_scanned,
            log_roots=tuple(roots),
            scan_errors=tuple(errors),
            last_updated=utc_now(),
        )
