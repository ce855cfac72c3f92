"""Last.fm client module for lfm.

Classes:
    :class:`LastFmClient` -- abstract interface shared by all clients.
    :class:`AsyncClient` -- raw client backed by :class:`httpx.AsyncClient`.
    :class:`CachedClient` -- decorator adding the disk cache and the global
    network throttle.

Example::

    from lfm.client import AsyncClient, CachedClient

    async with CachedClient(AsyncClient(api_key), store, gate, config.cache) as client:
        top = await client.get_top_tracks("rj", "1month", 20)
"""

from lfm.client.async_client import AsyncClient
from lfm.client.base import LastFmClient
from lfm.client.cached_client import CachedClient

__all__ = ["AsyncClient", "CachedClient", "LastFmClient"]
