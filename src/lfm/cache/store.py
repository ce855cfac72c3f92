"""File-backed store for serialised Last.fm responses.

Each entry lives in its own file, ``<cache_dir>/<key>.json``, holding a
:class:`~lfm.models.CacheEntry`: the payload text plus the time it was stored
and the time it stops being fresh. Writes go through
:func:`lfm.config.atomic_write`, so a concurrent reader sees either the old
entry or the new one and two writers to the same key simply leave the last
one in place.

Expiry is advisory. :meth:`CacheStore.retrieve` returns a payload whether or
not it has expired, and it is up to the caller to decide whether a stale copy
is acceptable. :meth:`CacheStore.exists` and
:meth:`CacheStore.retrieve_with_freshness` report freshness.

The store never lets a storage problem escape: I/O and decode errors are
logged and turned into ``False``, ``None``, ``0`` or empty statistics. The
only exception it raises is :class:`ValueError` for a key that could not
have come from :mod:`lfm.cache.keys`.

All blocking file access runs in a worker thread via
:func:`asyncio.to_thread`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, NamedTuple, Optional

from lfm.config import atomic_write
from lfm.models import CacheConfig, CacheEntry, CacheLookup, CacheStatistics

logger = logging.getLogger(__name__)

_ENTRY_SUFFIX = ".json"
_TEMP_GLOB = ".*.tmp"
_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_key(key: str) -> None:
    if not key or not _KEY_PATTERN.match(key):
        raise ValueError(f"Invalid cache key: {key!r}")


class _ScannedFile(NamedTuple):
    path: Path
    size: int
    entry: Optional[CacheEntry]


class CacheStore:
    """Durable key to payload store with per-entry expiry and budget eviction.

    Args:
        cache_dir: Directory holding the entry files. Created on the first
            write.
        config: Cache settings; ``expiry_minutes`` is the default TTL and the
            ``max_*`` fields are the eviction budgets used by :meth:`cleanup`.
        clock: Returns the current UTC time. Injectable for tests.

    Example::

        store = CacheStore(get_cache_dir(), CacheConfig())
        await store.store(key, payload_json, ttl_minutes=10)
        lookup = await store.retrieve_with_freshness(key)
    """

    def __init__(
        self,
        cache_dir: str | Path,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._config = config or CacheConfig()
        self._clock = clock

    @property
    def directory(self) -> Path:
        return self._cache_dir

    def _path_for(self, key: str) -> Path:
        _validate_key(key)
        return self._cache_dir / f"{key}{_ENTRY_SUFFIX}"

    # ------------------------------------------------------------------ #
    # Single-entry operations
    # ------------------------------------------------------------------ #

    async def store(
        self, key: str, payload: str, ttl_minutes: Optional[int] = None
    ) -> bool:
        """Write *payload* under *key*, replacing any previous entry.

        Args:
            key: A key produced by :mod:`lfm.cache.keys`.
            payload: Serialised JSON text.
            ttl_minutes: Freshness window; defaults to
                ``config.expiry_minutes``.

        Returns:
            ``True`` once the entry is durably on disk, ``False`` if the
            write failed.

        Raises:
            ValueError: If *key* is invalid or *payload* is ``None``.
        """
        path = self._path_for(key)
        if payload is None:
            raise ValueError("Cannot cache a None payload")
        ttl = self._config.expiry_minutes if ttl_minutes is None else ttl_minutes
        now = self._clock()
        entry = CacheEntry(
            key=key,
            payload=payload,
            stored_at=now,
            expires_at=now + timedelta(minutes=ttl),
            size_bytes=len(payload.encode("utf-8")),
        )
        try:
            await asyncio.to_thread(atomic_write, path, entry.model_dump_json())
        except OSError as exc:
            logger.warning("Failed to write cache entry %s: %s", key, exc)
            return False
        logger.debug("Cached %d bytes under %s (ttl %d min)", entry.size_bytes, key, ttl)
        return True

    async def retrieve(self, key: str) -> Optional[str]:
        """Return the stored payload for *key* regardless of expiry, or ``None``."""
        entry = await self._load(key)
        return entry.payload if entry is not None else None

    async def exists(self, key: str) -> bool:
        """Return ``True`` if *key* is stored and still fresh."""
        entry = await self._load(key)
        return entry is not None and not entry.is_expired(self._clock())

    async def retrieve_with_freshness(self, key: str) -> Optional[CacheLookup]:
        """Return the payload and its freshness from a single read.

        Returns:
            A :class:`~lfm.models.CacheLookup`, or ``None`` when nothing
            usable is stored under *key*.
        """
        entry = await self._load(key)
        if entry is None:
            return None
        return CacheLookup(
            payload=entry.payload, is_fresh=not entry.is_expired(self._clock())
        )

    async def remove(self, key: str) -> bool:
        """Delete *key*. Returns ``True`` if it is gone afterwards, including when it never existed."""
        path = self._path_for(key)
        return await asyncio.to_thread(self._unlink, path)

    async def _load(self, key: str) -> Optional[CacheEntry]:
        path = self._path_for(key)
        try:
            return await asyncio.to_thread(self._read_entry, path)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", key, exc)
            return None

    @staticmethod
    def _read_entry(path: Path) -> Optional[CacheEntry]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return CacheEntry.model_validate_json(text)

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to delete cache file %s: %s", path, exc)
            return False
        return True

    # ------------------------------------------------------------------ #
    # Whole-directory operations
    # ------------------------------------------------------------------ #

    def _scan(self) -> list[_ScannedFile]:
        """Read every entry file. Unreadable entries come back with ``entry=None``."""
        if not self._cache_dir.is_dir():
            return []
        scanned = []
        for path in self._cache_dir.glob(f"*{_ENTRY_SUFFIX}"):
            try:
                size = path.stat().st_size
            except OSError:
                # removed by a concurrent cleanup
                continue
            try:
                entry = self._read_entry(path)
            except (OSError, ValueError):
                entry = None
            scanned.append(_ScannedFile(path, size, entry))
        return scanned

    async def cleanup_expired(self) -> int:
        """Remove expired entries, plus any that can no longer be read.

        Returns:
            The number of files removed.
        """
        try:
            return await asyncio.to_thread(self._cleanup_expired_sync)
        except OSError as exc:
            logger.warning("Expired-entry cleanup failed: %s", exc)
            return 0

    def _cleanup_expired_sync(self) -> int:
        now = self._clock()
        removed = 0
        for scanned in self._scan():
            if scanned.entry is None or scanned.entry.is_expired(now):
                if self._unlink(scanned.path):
                    removed += 1
        if removed:
            logger.info("Removed %d expired cache entries", removed)
        return removed

    async def cleanup(self) -> int:
        """Evict entries until the cache fits its budgets.

        Order of eviction:

        1. expired or unreadable entries;
        2. entries stored more than ``max_age_days`` ago;
        3. while the total size exceeds ``max_size_mb`` or the file count
           exceeds ``max_files``, the oldest remaining entries.

        Returns:
            The number of files removed.
        """
        try:
            return await asyncio.to_thread(self._cleanup_sync)
        except OSError as exc:
            logger.warning("Cache cleanup failed: %s", exc)
            return 0

    def _cleanup_sync(self) -> int:
        now = self._clock()
        max_age = timedelta(days=self._config.max_age_days)
        removed = 0
        survivors: list[_ScannedFile] = []

        for scanned in self._scan():
            entry = scanned.entry
            if entry is None or entry.is_expired(now) or now - entry.stored_at > max_age:
                if self._unlink(scanned.path):
                    removed += 1
                    continue
            if entry is not None:
                survivors.append(scanned)

        max_bytes = self._config.max_size_mb * 1024 * 1024
        total_size = sum(s.size for s in survivors)
        count = len(survivors)
        survivors.sort(key=lambda s: s.entry.stored_at)
        for scanned in survivors:
            if total_size <= max_bytes and count <= self._config.max_files:
                break
            if self._unlink(scanned.path):
                removed += 1
                total_size -= scanned.size
                count -= 1

        logger.info(
            "Cache cleanup removed %d entries (%d remaining, %d bytes)",
            removed,
            count,
            total_size,
        )
        return removed

    async def clear_all(self) -> bool:
        """Delete every entry and leftover temp file.

        Returns:
            ``True`` if everything was removed.
        """
        try:
            return await asyncio.to_thread(self._clear_all_sync)
        except OSError as exc:
            logger.warning("Failed to clear cache: %s", exc)
            return False

    def _clear_all_sync(self) -> bool:
        if not self._cache_dir.is_dir():
            return True
        ok = True
        paths = list(self._cache_dir.glob(f"*{_ENTRY_SUFFIX}"))
        paths.extend(self._cache_dir.glob(_TEMP_GLOB))
        for path in paths:
            ok = self._unlink(path) and ok
        logger.info("Cleared %d cache files from %s", len(paths), self._cache_dir)
        return ok

    async def get_statistics(self) -> CacheStatistics:
        """Summarise the cache directory.

        ``total_size_bytes`` is the on-disk size of the entry files, which is
        what the ``max_size_mb`` budget is measured against.
        """
        try:
            return await asyncio.to_thread(self._statistics_sync)
        except OSError as exc:
            logger.warning("Failed to compute cache statistics: %s", exc)
            return CacheStatistics(storage_location=str(self._cache_dir))

    def _statistics_sync(self) -> CacheStatistics:
        now = self._clock()
        scanned = self._scan()
        entries = [s.entry for s in scanned if s.entry is not None]
        stored = [e.stored_at for e in entries]
        return CacheStatistics(
            entry_count=len(entries),
            file_count=len(scanned),
            total_size_bytes=sum(s.size for s in scanned),
            expired_count=sum(1 for e in entries if e.is_expired(now)),
            oldest_entry=min(stored) if stored else None,
            newest_entry=max(stored) if stored else None,
            storage_location=str(self._cache_dir),
        )
