# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Incremental scan state for local usage logs.

For every log file the cache remembers how far it has been read (byte
offset, size and mtime at that point), any trailing partial line, and the
usage already aggregated from the part that was read. A later scan only
parses bytes appended since, and a file that shrank or went back in time is
read again from the start.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

from ..core.constants import LIB_LOGGER_NAME
from ..core.types import DailyUsage, ProviderIdentity, SessionUsage, UsageRecord
from ..providers.utilities.shared_utils import parse_iso_datetime

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


@dataclass
class FileCacheEntry:
    """Read position and aggregated usage for one log file."""

    path: str
    size: int = 0
    offset: int = 0
    mtime_ns: int = 0
    incomplete_line: Optional[bytes] = None
    records: int = 0
    daily: Dict[date, DailyUsage] = field(default_factory=dict)
    last_session: Optional[SessionUsage] = None

    def is_current(self, size: int, mtime_ns: int) -> bool:
        return self.offset == size and self.mtime_ns == mtime_ns

    def needs_rescan(self, size: int, mtime_ns: int) -> bool:
        """True when the file was truncated or replaced since the last read."""
        return size < self.offset or mtime_ns < self.mtime_ns

    def reset(self) -> None:
        self.size = 0
        self.offset = 0
        self.mtime_ns = 0
        self.incomplete_line = None
        self.records = 0
        self.daily = {}
        self.last_session = None

    def add(self, record: UsageRecord, session_id: Optional[str] = None) -> None:
        """
        Fold one record into the daily totals and the latest session.

        A newer record from the same session extends it; a newer record from
        another session replaces it. Older records only count towards days.
        """
        self.records += 1

        day = record.timestamp.date()
        daily = self.daily.get(day) or DailyUsage(day=day)
        self.daily[day] = DailyUsage(
            day=day,
            input_tokens=daily.input_tokens + record.input_tokens,
            output_tokens=daily.output_tokens + record.output_tokens,
            total_tokens=daily.total_tokens + record.total_tokens,
        )

        session_id = record.session_id or session_id
        current = self.last_session
        if current is not None and record.timestamp < current.last_activity:
            return
        if current is not None and session_id and current.session_id == session_id:
            self.last_session = SessionUsage(
                last_activity=record.timestamp,
                input_tokens=current.input_tokens + record.input_tokens,
                output_tokens=current.output_tokens + record.output_tokens,
                total_tokens=current.total_tokens + record.total_tokens,
                provider=current.provider or record.provider,
                session_id=session_id,
            )
            return
        self.last_session = SessionUsage(
            last_activity=record.timestamp,
            input_tokens=record.input_tokens,
            output_tokens=record.output_tokens,
            total_tokens=record.total_tokens,
            provider=record.provider,
            session_id=session_id,
        )

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        session = self.last_session
        return {
            "size": self.size,
            "offset": self.offset,
            "mtime_ns": self.mtime_ns,
            "incomplete_line": (
                base64.b64encode(self.incomplete_line).decode("ascii")
                if self.incomplete_line
                else None
            ),
            "records": self.records,
            "daily": {
                day.isoformat(): [
                    usage.input_tokens,
                    usage.output_tokens,
                    usage.total_tokens,
                ]
                for day, usage in sorted(self.daily.items())
            },
            "last_session": (
                {
                    "last_activity": session.last_activity.isoformat(),
                    "input_tokens": session.input_tokens,
                    "output_tokens": session.output_tokens,
                    "total_tokens": session.total_tokens,
                    "provider": session.provider.value if session.provider else None,
                    "session_id": session.session_id,
                }
                if session is not None
                else None
            ),
        }

    @classmethod
    def from_dict(cls, path: str, data: Dict[str, Any]) -> "FileCacheEntry":
        """
        Rebuild an entry from decoded JSON.

        Raises:
            ValueError, TypeError, KeyError: If the entry is malformed
        """
        incomplete = data.get("incomplete_line")
        try:
            incomplete_line = base64.b64decode(incomplete, validate=True) if incomplete else None
        except (binascii.Error, ValueError):
            incomplete_line = None

        daily: Dict[date, DailyUsage] = {}
        for key, counts in (data.get("daily") or {}).items():
            day = date.fromisoformat(key)
            input_tokens, output_tokens, total_tokens = (int(value) for value in counts)
            daily[day] = DailyUsage(
                day=day,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=total_tokens,
            )

        last_session = None
        session = data.get("last_session")
        if isinstance(session, dict):
            last_activity = parse_iso_datetime(session.get("last_activity"))
            if last_activity is not None:
                provider = session.get("provider")
                last_session = SessionUsage(
                    last_activity=last_activity,
                    input_tokens=int(session.get("input_tokens", 0)),
                    output_tokens=int(session.get("output_tokens", 0)),
                    total_tokens=int(session.get("total_tokens", 0)),
                    provider=ProviderIdentity(provider) if provider else None,
                    session_id=session.get("session_id"),
                )

        return cls(
            path=path,
            size=int(data.get("size", 0)),
            offset=int(data.get("offset", 0)),
            mtime_ns=int(data.get("mtime_ns", 0)),
            incomplete_line=incomplete_line,
            records=int(data.get("records", 0)),
            daily=daily,
            last_session=last_session,
        )


@dataclass
class ScanCache:
    files: Dict[str, FileCacheEntry] = field(default_factory=dict)

    def entry(self, path: str) -> FileCacheEntry:
        """Return the entry for path, creating an empty one if needed."""
        entry = self.files.get(path)
        if entry is None:
            entry = FileCacheEntry(path=path)
            self.files[path] = entry
        return entry

    def prune(self, keep: Iterable[str]) -> None:
        """Forget files that were not seen by the latest scan."""
        wanted = set(keep)
        for path in list(self.files):
            if path not in wanted:
                del self.files[path]

    def to_dict(self) -> Dict[str, Any]:
        return {"files": {path: entry.to_dict() for path, entry in self.files.items()}}


class CacheStore:
    """
    Loads and saves the scan cache as JSON.

    A missing or unreadable cache is not an error: the next scan simply
    starts from the beginning of every file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> ScanCache:
        if not self.path.exists():
            return ScanCache()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
            if not text.strip():
                return ScanCache()
            data = json.loads(text)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            lib_logger.warning(f"Ignoring unreadable scan cache {self.path}: {e}")
            return ScanCache()

        files = data.get("files") if isinstance(data, dict) else None
        if not isinstance(files, dict):
            return ScanCache()

        cache = ScanCache()
        for path, entry in files.items():
            if not isinstance(entry, dict):
                continue
            try:
                cache.files[path] = FileCacheEntry.from_dict(path, entry)
            except (ValueError, TypeError, KeyError) as e:
                lib_logger.debug(f"Dropping malformed cache entry for {path}: {e}")
        return cache

    def save(self, cache: ScanCache) -> None:
        """Persist the cache atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(cache.to_dict(), f, indent=2)
        temp_path.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
