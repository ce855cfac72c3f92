"""Process-wide gate enforcing a minimum interval between network calls.

Last.fm rate-limits API keys, so every real network call made by the
caching client passes through one :class:`ThrottleGate`. The gate is an
explicit object: the CLI builds exactly one and hands it to every client it
creates, and tests build their own.

The interval is measured from the *completion* of the previous call, not its
start, so a slow response does not let the next request go out early. Gate
holders are serialised by a single :class:`asyncio.Lock`, which means at most
one network call is in flight through a given gate at any time.

Cache hits never touch the gate.

Example::

    gate = ThrottleGate()
    async with gate.turn(100):
        response = await http.get(url)
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ThrottleGate:
    """Serialises network calls and spaces them at least *min_interval_ms* apart.

    Args:
        clock: Monotonic clock returning seconds. Injectable for tests.
        sleep: Coroutine function used to wait. Injectable for tests.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_completed: Optional[float] = None
        self._holder: Optional[asyncio.Task[object]] = None
        self.disabled = False

    @property
    def last_completed(self) -> Optional[float]:
        """Clock reading of the most recently recorded completion, if any."""
        return self._last_completed

    def _remaining(self, min_interval_ms: int) -> float:
        if self._last_completed is None or min_interval_ms <= 0:
            return 0.0
        elapsed = self._clock() - self._last_completed
        return min_interval_ms / 1000.0 - elapsed

    async def wait_for_turn(self, min_interval_ms: int) -> bool:
        """Acquire the gate, sleeping until the interval since the last completion has passed.

        The caller must follow up with :meth:`record_completion` from the same
        task once its network call finishes. Prefer :meth:`turn`, which does
        both.

        Returns:
            ``True`` if the gate was acquired, ``False`` when throttling is
            disabled and the caller may proceed immediately.
        """
        if self.disabled:
            return False
        await self._lock.acquire()
        try:
            delay = self._remaining(min_interval_ms)
            if delay > 0:
                logger.debug("Throttling network call for %.0f ms", delay * 1000)
                await self._sleep(delay)
        except BaseException:
            # cancelled while waiting: give the gate back before propagating
            self._lock.release()
            raise
        self._holder = asyncio.current_task()
        return True

    def record_completion(self) -> None:
        """Record now as the last completion.

        The gate is released only when the calling task is the one that
        acquired it, so a caller that was let through while throttling was
        disabled cannot free a turn held by someone else.
        """
        self._last_completed = self._clock()
        if self._holder is not None and self._holder is asyncio.current_task():
            self._holder = None
            self._lock.release()

    @asynccontextmanager
    async def turn(self, min_interval_ms: int) -> AsyncIterator[None]:
        """Hold the gate for the duration of one network call.

        Completion is recorded even if the body raises or is cancelled.
        """
        await self.wait_for_turn(min_interval_ms)
        try:
            yield
        finally:
            self.record_completion()
