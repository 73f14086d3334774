# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Usage monitor: settings owner and refresh scheduler.

Runs a repeating timer task that triggers whole-aggregate refresh cycles,
accepts on-demand refreshes (all providers or one), optionally refreshes
when local usage logs change, and publishes each new AggregateSummary to
subscribers. Every full cycle scans the local logs alongside the provider
fetches. All cycles are serialized by one lock; a cycle that is cancelled
never publishes, so the previous summary stays.
"""

import asyncio
import logging
import time
from datetime import timedelta
from typing import Callable, List, Optional

from .core.config import SettingsStore, normalize_log_roots
from .core.constants import LIB_LOGGER_NAME, MIN_REFRESH_MINUTES
from .core.types import (
    AggregateSummary,
    AppSettings,
    ProviderIdentity,
    SummaryObserver,
    utc_now,
)
from .diagnostics import DiagnosticsLog
from .logs import CacheStore, LogChangeWatcher, LogScanner
from .service import UsageAcquisitionService

lib_logger = logging.getLogger(LIB_LOGGER_NAME)


class UsageMonitor:
    """
    Owns the current settings and the latest published summary.

    Settings are replaced wholesale through save_settings(); the engine never
    edits them in place during a cycle.
    """

    def __init__(
        self,
        service: UsageAcquisitionService,
        settings_store: Optional[SettingsStore] = None,
        diagnostics: Optional[DiagnosticsLog] = None,
        scanner: Optional[LogScanner] = None,
    ):
        self._service = service
        self._store = settings_store or SettingsStore()
        self._scanner = scanner or LogScanner(CacheStore(self._store.cache_path))
        if diagnostics is None:
            diagnostics = service.diagnostics
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticsLog()

        self._settings = AppSettings.create_default()
        self._summary = AggregateSummary()
        self._subscribers: List[SummaryObserver] = []
        self._refresh_lock = asyncio.Lock()
        self._timer_task: Optional[asyncio.Task] = None
        self._timer_interval: Optional[float] = None
        self._watcher: Optional[LogChangeWatcher] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def summary(self) -> AggregateSummary:
        return self._summary

    @property
    def timer_interval(self) -> Optional[float]:
        """Current timer period in seconds, or None when stopped."""
        return self._timer_interval

    @property
    def is_running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None and self._watcher.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self, initial_refresh: bool = True) -> None:
        """Load settings, start the timer and (by default) refresh once."""
        self._settings = await asyncio.to_thread(self._store.load)
        self._configure_timer()
        await self._configure_watcher()
        lib_logger.info(
            f"Usage monitor started (refresh every {self._settings.refresh_minutes} min)"
        )
        if initial_refresh:
            await self.refresh()

    async def stop(self) -> None:
        await self._stop_watcher()
        task, self._timer_task = self._timer_task, None
        self._timer_interval = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        lib_logger.info("Usage monitor stopped")

    async def __aenter__(self) -> "UsageMonitor":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh(self) -> AggregateSummary:
        """
        Run one whole-aggregate cycle and publish the result.

        Returns:
            The newly published summary
        """
        async with self._refresh_lock:
            settings = self._settings
            self.diagnostics.log_refresh_started()
            started = time.monotonic()

            local_usage, snapshots = await asyncio.gather(
                asyncio.to_thread(
                    self._scanner.scan, normalize_log_roots(settings.log_roots)
                ),
                self._service.fetch(settings),
            )
            summary = AggregateSummary(
                snapshots=tuple(snapshots),
                last_updated=utc_now(),
                local_usage=local_usage,
            )
            self._summary = summary

            self.diagnostics.log_refresh_completed(
                timedelta(seconds=time.monotonic() - started)
            )

        self._publish(summary)
        return summary

    async def refresh_provider(self, provider: ProviderIdentity) -> AggregateSummary:
        """
        Refresh one provider, keeping every other snapshot as it is.

        Disabled providers are left alone.

        Returns:
            The current summary after the refresh
        """
        async with self._refresh_lock:
            settings = self._settings
            if not settings.get_provider_settings(provider).enabled:
                lib_logger.debug(f"Skipping refresh of disabled provider {provider.value}")
                return self._summary

            snapshot = await self._service.fetch_provider(settings, provider)
            summary = self._summary.with_snapshot(snapshot)
            self._summary = summary

        self._publish(summary)
        return summary

    # =========================================================================
    # SETTINGS
    # =========================================================================

    async def save_settings(self, settings: AppSettings) -> None:
        """
        Validate, persist and adopt new settings, then reschedule the timer.

        Raises:
            ConfigError: If the settings are malformed (nothing is changed)
            OSError: If the settings file cannot be written
        """
        settings.validate()
        settings.normalize_providers()
        await asyncio.to_thread(self._store.save, settings)
        self._settings = settings
        self._configure_timer()
        await self._configure_watcher()
        lib_logger.info("Settings saved")

    # =========================================================================
    # SUBSCRIBERS
    # =========================================================================

    def subscribe(self, callback: SummaryObserver) -> Callable[[], None]:
        """
        Register a callback for every published summary.

        Returns:
            Function that removes the callback again
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, summary: AggregateSummary) -> None:
        for callback in list(self._subscribers):
            try:
                callback(summary)
            except Exception as e:
                lib_logger.warning(f"Summary subscriber failed: {e}")

    # =========================================================================
    # TIMER
    # =========================================================================

    def _configure_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()

        minutes = max(MIN_REFRESH_MINUTES, self._settings.refresh_minutes)
        self._timer_interval = minutes * 60.0
        self._timer_task = asyncio.create_task(self._run_timer(self._timer_interval))

    async def _run_timer(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.refresh()
            except Exception as e:
                lib_logger.error(f"Scheduled refresh failed: {e}")

    # =========================================================================
    # LOG WATCHER
    # =========================================================================

    async def _configure_watcher(self) -> None:
        await self._stop_watcher()
        if not self._settings.watch_file_changes:
            return
        self._watcher = LogChangeWatcher(
            normalize_log_roots(self._settings.log_roots), self.refresh
        )
        await self._watcher.start()

    async def _stop_watcher(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            await watcher.stop()
