"""Disk-based response caching for lfm.

This package provides the three pieces the caching client is assembled from:

* :mod:`~lfm.cache.keys` -- deterministic cache keys per Last.fm operation.
* :class:`CacheStore` -- one JSON file per key with expiry and eviction.
* :class:`CleanupScheduler` -- decides when eviction runs.

The cache is consumed by :class:`~lfm.client.cached_client.CachedClient`
and is controlled by the ``cache`` section of the configuration
(:class:`~lfm.models.CacheConfig`).
"""

from lfm.cache.cleanup import CleanupScheduler
from lfm.cache.store import CacheStore

__all__ = ["CacheStore", "CleanupScheduler"]
