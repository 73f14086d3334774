# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Bounded diagnostics event log.

A FIFO ring buffer of DiagnosticsEntry values. Appends come from fetch
coordinators running on the event loop and, potentially, from other threads;
a single lock guards the buffer and the observer list. Observers are called
after the lock is released so a slow or re-entrant observer cannot block
other writers.
"""

import logging
import threading
from collections import deque
from datetime import timedelta
from typing import Callable, Deque, List, Optional

from ..core.constants import DIAGNOSTICS_CAPACITY, LIB_LOGGER_NAME
from ..core.types import (
    DiagnosticsEntry,
    DiagnosticsEventType,
    DiagnosticsObserver,
    ProviderIdentity,
)

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


class DiagnosticsLog:
    """
    Capacity-bounded diagnostics ring buffer.

    When full, the oldest entry is evicted on append.
    """

    def __init__(self, capacity: int = DIAGNOSTICS_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._entries: Deque[DiagnosticsEntry] = deque(maxlen=capacity)
        self._observers: List[DiagnosticsObserver] = []
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    # =========================================================================
    # BUFFER
    # =========================================================================

    def log(self, entry: DiagnosticsEntry) -> None:
        """Append an entry and notify observers."""
        with self._lock:
            self._entries.append(entry)
            observers = list(self._observers)

        self._mirror(entry)

        for observer in observers:
            try:
                observer(entry)
            except Exception as e:
                lib_logger.warning(f"Diagnostics observer failed: {e}")

    def get_entries(self) -> List[DiagnosticsEntry]:
        """Return a snapshot copy of the buffer, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def subscribe(self, callback: DiagnosticsObserver) -> Callable[[], None]:
        """
        Register a callback invoked for every new entry.

        Returns:
            Function that removes the callback again
        """
        with self._lock:
            self._observers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._observers:
                    self._observers.remove(callback)

        return unsubscribe

    # =========================================================================
    # CONVENIENCE EMITTERS
    # =========================================================================

    def log_attempt(self, provider: ProviderIdentity, source: str) -> None:
        self.log(
            DiagnosticsEntry(
                event_type=DiagnosticsEventType.FETCH_ATTEMPT,
                provider=provider,
                source_label=source,
                message=f"Attempting {source} fetch...",
            )
        )

    def log_success(
        self,
        provider: ProviderIdentity,
        source: str,
        duration: Optional[timedelta] = None,
    ) -> None:
        self.log(
            DiagnosticsEntry(
                event_type=DiagnosticsEventType.FETCH_SUCCESS,
                provider=provider,
                source_label=source,
                message=f"Successfully fetched via {source}",
                duration=duration,
            )
        )

    def log_failure(
        self,
        provider: ProviderIdentity,
        source: str,
        message: str,
        duration: Optional[timedelta] = None,
    ) -> None:
        self.log(
            DiagnosticsEntry(
                event_type=DiagnosticsEventType.FETCH_FAILURE,
                provider=provider,
                source_label=source,
                message=message,
                duration=duration,
            )
        )

    def log_refresh_started(self) -> None:
        self.log(
            DiagnosticsEntry(
                event_type=DiagnosticsEventType.REFRESH_STARTED,
                message="Refresh cycle started",
            )
        )

    def log_refresh_completed(self, duration: Optional[timedelta] = None) -> None:
        self.log(
            DiagnosticsEntry(
                event_type=DiagnosticsEventType.REFRESH_COMPLETED,
                message="Refresh cycle completed",
                duration=duration,
            )
        )

    # =========================================================================
    # LOGGING MIRROR
    # =========================================================================

    @staticmethod
    def _mirror(entry: DiagnosticsEntry) -> None:
        parts = []
        if entry.provider is not None:
            parts.append(entry.provider.value)
        if entry.source_label:
            parts.append(entry.source_label)
        prefix = f"[{'/'.join(parts)}] " if parts else ""
        suffix = (
            f" ({entry.duration.total_seconds() * 1000:.0f}ms)"
            if entry.duration is not None
            else ""
        )
        level = (
            logging.INFO
            if entry.event_type == DiagnosticsEventType.FETCH_FAILURE
            else logging.DEBUG
        )
        lib_logger.log(level, f"{prefix}{entry.message}{suffix}")
