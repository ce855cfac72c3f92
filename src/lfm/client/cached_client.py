"""Caching decorator around a :class:`~lfm.client.base.LastFmClient`.

:class:`CachedClient` exposes exactly the same methods as the client it
wraps. Every call goes through one routine, :meth:`CachedClient._get_with_cache`,
which decides per call whether to answer from the disk cache or the network:

============  ==========================================================
Mode          Behaviour
============  ==========================================================
normal        Fresh entry -> return it. Otherwise call the API and store.
force-cache   Any stored entry, fresh or stale -> return it. Otherwise as
              ``normal``.
force-api     Always call the API; store the result.
no-cache      Always call the API; never read or write the cache.
============  ==========================================================

Caching is also bypassed entirely when no cache config is supplied or
``config.enabled`` is false.

Guarantees that hold in every mode:

* Each network call passes through the shared
  :class:`~lfm.throttle.ThrottleGate`; cache hits do not.
* A network failure (an exception or a ``None`` result) gets exactly one
  direct retry. Its result is returned but never stored. If the retry fails
  as well the method returns ``None``; it never raises.
* An empty result (e.g. a user with no scrobbles in the period) is returned
  but never stored, so it cannot mask data that shows up later.
* A corrupt or undecodable cache entry is logged and treated as a miss.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel

from lfm.cache import keys
from lfm.cache.cleanup import CleanupScheduler
from lfm.cache.store import CacheStore
from lfm.client.base import LastFmClient
from lfm.models import (
    ArtistInfo,
    CacheBehavior,
    CacheConfig,
    RecentTracks,
    SimilarArtists,
    TimingRecord,
    TopAlbums,
    TopArtists,
    TopTracks,
    TrackInfo,
)
from lfm.throttle import ThrottleGate

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _describe(params: tuple[Any, ...]) -> str:
    return ", ".join(str(p) for p in params)


class CachedClient(LastFmClient):
    """Cache-aware :class:`LastFmClient` with a global network throttle.

    Args:
        inner: The client that performs the real API calls.
        store: Where responses are cached.
        throttle: The process-wide gate; share one instance between every
            client in the process.
        config: Cache settings. ``None`` disables caching.
        throttle_ms: Minimum milliseconds between completed network calls.
        cleanup: Eviction scheduler. Built from *store* and *config* when
            omitted.
        cache_behavior: Initial :class:`~lfm.models.CacheBehavior`.
        enable_timing: Record a :class:`~lfm.models.TimingRecord` per call.

    Example::

        async with CachedClient(AsyncClient(key), store, gate, config.cache) as client:
            client.cache_behavior = CacheBehavior.FORCE_CACHE
            top = await client.get_top_artists("rj", "7day", 10)
    """

    def __init__(
        self,
        inner: LastFmClient,
        store: CacheStore,
        throttle: ThrottleGate,
        config: Optional[CacheConfig] = None,
        throttle_ms: int = 100,
        cleanup: Optional[CleanupScheduler] = None,
        cache_behavior: CacheBehavior = CacheBehavior.NORMAL,
        enable_timing: bool = False,
    ) -> None:
        self._inner = inner
        self._store = store
        self._throttle = throttle
        self._config = config
        self._throttle_ms = throttle_ms
        if cleanup is None and config is not None:
            cleanup = CleanupScheduler(store, config)
        self._cleanup = cleanup
        self.cache_behavior = cache_behavior
        self.enable_timing = enable_timing
        self._timing: list[TimingRecord] = []

    # ------------------------------------------------------------------ #
    # Session controls
    # ------------------------------------------------------------------ #

    @property
    def timing_results(self) -> list[TimingRecord]:
        """Timing records collected since the last :meth:`clear_timing`."""
        return list(self._timing)

    def clear_timing(self) -> None:
        self._timing.clear()

    @property
    def disable_throttling(self) -> bool:
        return self._throttle.disabled

    @disable_throttling.setter
    def disable_throttling(self, value: bool) -> None:
        # affects every client sharing the gate
        self._throttle.disabled = value

    @property
    def effective_behavior(self) -> CacheBehavior:
        if self._config is None or not self._config.enabled:
            return CacheBehavior.NO_CACHE
        return self.cache_behavior

    async def __aenter__(self) -> CachedClient:
        await self._inner.__aenter__()
        return self

    async def __aexit__(self, *args: object) -> None:
        try:
            await self._inner.__aexit__(*args)
        finally:
            if self._cleanup is not None:
                await self._cleanup.wait()

    # ------------------------------------------------------------------ #
    # Last.fm methods
    # ------------------------------------------------------------------ #

    async def get_top_artists(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopArtists]:
        return await self._get_with_cache(
            "get_top_artists",
            keys.top_artists_key(username, period, limit, page),
            lambda: self._inner.get_top_artists(username, period, limit, page),
            TopArtists,
            (username, period, limit, page),
            lambda r: not r.artists,
        )

    async def get_top_tracks(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopTracks]:
        return await self._get_with_cache(
            "get_top_tracks",
            keys.top_tracks_key(username, period, limit, page),
            lambda: self._inner.get_top_tracks(username, period, limit, page),
            TopTracks,
            (username, period, limit, page),
            lambda r: not r.tracks,
        )

    async def get_top_albums(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopAlbums]:
        return await self._get_with_cache(
            "get_top_albums",
            keys.top_albums_key(username, period, limit, page),
            lambda: self._inner.get_top_albums(username, period, limit, page),
            TopAlbums,
            (username, period, limit, page),
            lambda r: not r.albums,
        )

    async def get_artist_top_tracks(
        self, artist: str, limit: int = 10
    ) -> Optional[TopTracks]:
        return await self._get_with_cache(
            "get_artist_top_tracks",
            keys.artist_top_tracks_key(artist, limit),
            lambda: self._inner.get_artist_top_tracks(artist, limit),
            TopTracks,
            (artist, limit),
            lambda r: not r.tracks,
        )

    async def get_artist_top_albums(
        self, artist: str, limit: int = 10
    ) -> Optional[TopAlbums]:
        return await self._get_with_cache(
            "get_artist_top_albums",
            keys.artist_top_albums_key(artist, limit),
            lambda: self._inner.get_artist_top_albums(artist, limit),
            TopAlbums,
            (artist, limit),
            lambda r: not r.albums,
        )

    async def get_similar_artists(
        self, artist: str, limit: int = 10
    ) -> Optional[SimilarArtists]:
        return await self._get_with_cache(
            "get_similar_artists",
            keys.similar_artists_key(artist, limit),
            lambda: self._inner.get_similar_artists(artist, limit),
            SimilarArtists,
            (artist, limit),
            lambda r: not r.artists,
        )

    async def get_recent_tracks(
        self,
        username: str,
        from_: datetime,
        to: datetime,
        limit: int = 200,
        page: int = 1,
    ) -> Optional[RecentTracks]:
        return await self._get_with_cache(
            "get_recent_tracks",
            keys.recent_tracks_key(username, from_, to, limit, page),
            lambda: self._inner.get_recent_tracks(username, from_, to, limit, page),
            RecentTracks,
            (username, from_.isoformat(), to.isoformat(), limit, page),
            lambda r: not r.tracks,
        )

    async def get_artist_info(self, artist: str, username: str) -> Optional[ArtistInfo]:
        return await self._get_with_cache(
            "get_artist_info",
            keys.artist_info_key(artist, username),
            lambda: self._inner.get_artist_info(artist, username),
            ArtistInfo,
            (artist, username),
            lambda r: not r.name,
        )

    async def get_track_info(
        self, artist: str, track: str, username: str
    ) -> Optional[TrackInfo]:
        return await self._get_with_cache(
            "get_track_info",
            keys.track_info_key(artist, track, username),
            lambda: self._inner.get_track_info(artist, track, username),
            TrackInfo,
            (artist, track, username),
            lambda r: not r.name,
        )

    # ------------------------------------------------------------------ #
    # Get-with-cache protocol
    # ------------------------------------------------------------------ #

    async def _get_with_cache(
        self,
        operation: str,
        key: str,
        fetch: Callable[[], Awaitable[Optional[ModelT]]],
        model: type[ModelT],
        params: tuple[Any, ...],
        is_empty: Callable[[ModelT], bool],
    ) -> Optional[ModelT]:
        started = time.perf_counter()
        self._schedule_cleanup()
        behavior = self.effective_behavior
        described = _describe(params)

        if behavior in (CacheBehavior.NORMAL, CacheBehavior.FORCE_CACHE):
            cached = await self._read_cached(operation, key, model, behavior)
            if cached is not None:
                logger.debug("Cache hit for %s (%s)", operation, described)
                self._record(operation, True, started, f"{behavior.value}, params: {described}")
                return cached
            logger.debug("Cache miss for %s (%s)", operation, described)

        result, from_fallback = await self._fetch(operation, fetch)
        if result is None:
            self._record(operation, False, started, f"FAILED, params: {described}")
            return None

        if from_fallback:
            self._record(operation, False, started, f"fallback, params: {described}")
            return result

        if behavior is not CacheBehavior.NO_CACHE:
            if is_empty(result):
                logger.debug("Not caching empty result for %s (%s)", operation, described)
            else:
                await self._write_cached(operation, key, result)
        self._record(operation, False, started, f"{behavior.value}, params: {described}")
        return result

    async def _read_cached(
        self,
        operation: str,
        key: str,
        model: type[ModelT],
        behavior: CacheBehavior,
    ) -> Optional[ModelT]:
        try:
            lookup = await self._store.retrieve_with_freshness(key)
            if lookup is None:
                return None
            if behavior is CacheBehavior.NORMAL and not lookup.is_fresh:
                logger.debug("Cached %s is stale, refreshing", operation)
                return None
            return model.model_validate_json(lookup.payload)
        except Exception as exc:
            logger.warning("Discarding unreadable cache entry for %s: %s", operation, exc)
            return None

    async def _write_cached(self, operation: str, key: str, result: BaseModel) -> None:
        if self._config is None:
            return
        try:
            payload = result.model_dump_json(by_alias=True)
            stored = await self._store.store(key, payload, self._config.expiry_minutes)
        except Exception as exc:
            logger.warning("Failed to cache result for %s: %s", operation, exc)
            return
        if not stored:
            logger.warning("Result for %s was not cached", operation)

    async def _fetch(
        self,
        operation: str,
        fetch: Callable[[], Awaitable[Optional[ModelT]]],
    ) -> tuple[Optional[ModelT], bool]:
        """Call the network, retrying once directly on failure.

        Returns:
            ``(result, from_fallback)``; *result* is ``None`` when both
            attempts failed.
        """
        try:
            result = await self._network_call(fetch)
        except Exception as exc:
            logger.warning("API call for %s failed: %s", operation, exc)
            result = None
        if result is not None:
            return result, False

        logger.info("Retrying %s with a direct API call", operation)
        try:
            result = await self._network_call(fetch)
        except Exception as exc:
            logger.error("Direct API call for %s failed as well: %s", operation, exc)
            return None, True
        if result is None:
            logger.error("Direct API call for %s returned no data", operation)
        return result, True

    async def _network_call(
        self, fetch: Callable[[], Awaitable[Optional[ModelT]]]
    ) -> Optional[ModelT]:
        async with self._throttle.turn(self._throttle_ms):
            return await fetch()

    def _schedule_cleanup(self) -> None:
        if self._cleanup is None:
            return
        try:
            self._cleanup.maybe_schedule()
        except Exception as exc:
            logger.warning("Could not schedule cache cleanup: %s", exc)

    def _record(self, operation: str, cache_hit: bool, started: float, detail: str) -> None:
        if not self.enable_timing:
            return
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._timing.append(
            TimingRecord(
                operation=operation,
                cache_hit=cache_hit,
                elapsed_ms=round(elapsed_ms, 2),
                detail=detail,
            )
        )
