"""Opportunistic cache eviction.

The caching client asks the scheduler on every call whether a cleanup is
due. When it is, a single background task is started and the call carries on
without waiting for it. The task only evicts when the cache is getting close
to its budgets (80% of ``max_size_mb`` or ``max_files``); otherwise it just
records that it looked.

The time of the last run is persisted through a callback, by default
:func:`lfm.config.record_cache_cleanup`, so the interval holds across CLI
invocations. Nothing in here ever raises into the caller.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from lfm.cache.store import CacheStore
from lfm.config import record_cache_cleanup
from lfm.models import CacheConfig, CacheStatistics

logger = logging.getLogger(__name__)

USAGE_THRESHOLD = 0.8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CleanupScheduler:
    """Decides when to run :meth:`CacheStore.cleanup` and runs it off the request path.

    Args:
        store: The store to clean.
        config: Supplies the interval, the budgets and the last run time.
        on_complete: Called with the completion time after each run. It is
            invoked in a worker thread since the default writes the config
            file.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        store: CacheStore,
        config: CacheConfig,
        on_complete: Optional[Callable[[datetime], None]] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._config = config
        self._on_complete = on_complete if on_complete is not None else record_cache_cleanup
        self._clock = clock
        self._last_cleanup = config.last_cleanup
        self._task: Optional[asyncio.Task[int]] = None

    @property
    def last_cleanup(self) -> Optional[datetime]:
        return self._last_cleanup

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_due(self, now: Optional[datetime] = None) -> bool:
        if self._last_cleanup is None:
            return True
        now = now or self._clock()
        interval = timedelta(hours=self._config.cleanup_interval_hours)
        return now - self._last_cleanup >= interval

    def maybe_schedule(self) -> Optional[asyncio.Task[int]]:
        """Start a background cleanup if one is due and none is running.

        Must be called from within a running event loop.

        Returns:
            The new task, or ``None`` if nothing was started.
        """
        if self.running or not self.is_due():
            return None
        logger.debug("Cache cleanup due, starting in background")
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def _needs_eviction(self, stats: CacheStatistics) -> bool:
        size_limit = self._config.max_size_mb * 1024 * 1024 * USAGE_THRESHOLD
        file_limit = self._config.max_files * USAGE_THRESHOLD
        return stats.total_size_bytes > size_limit or stats.file_count > file_limit

    async def run(self) -> int:
        """Run one cleanup pass and record its completion.

        Returns:
            The number of entries evicted; ``0`` when under budget or on
            failure.
        """
        try:
            stats = await self._store.get_statistics()
            removed = 0
            if self._needs_eviction(stats):
                logger.info(
                    "Cache at %d files / %d bytes, evicting",
                    stats.file_count,
                    stats.total_size_bytes,
                )
                removed = await self._store.cleanup()
            now = self._clock()
            self._last_cleanup = now
            await asyncio.to_thread(self._on_complete, now)
            return removed
        except Exception as exc:
            logger.warning("Background cache cleanup failed: %s", exc)
            return 0

    async def wait(self) -> None:
        """Wait for an in-flight cleanup, if any, to finish."""
        if self._task is not None:
            await self._task
