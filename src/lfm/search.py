"""Artist search through a user's own listening history.

Last.fm has no "my top tracks by artist X" method, so ``artist-tracks`` and
``artist-albums`` page through the user's overall top tracks (or albums),
most played first, and keep the items credited to the artist. A heavy
listener's library runs to thousands of pages, so pages are fetched in
concurrent batches with the per-call throttle turned off; the batches
themselves are spaced :data:`DEFAULT_BATCH_INTERVAL_MS` apart instead, which
keeps the overall request rate within Last.fm's limit. Pages already in the
cache come back almost instantly and skip the spacing.

The search stops at the first short page (the end of the library), after
*depth* items, once it has collected several times the requested number of
matches, or when the timeout expires. Matches found before a timeout are
kept.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from lfm.client.cached_client import CachedClient
from lfm.models import Album, Track

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
EARLY_STOP_FACTOR = 3
DEFAULT_BATCH_INTERVAL_MS = 1000
# batches faster than this were served from the cache
CACHED_BATCH_SECONDS = 0.05

ItemT = TypeVar("ItemT")
PageT = TypeVar("PageT")


@dataclass
class SearchResult(Generic[ItemT]):
    """Outcome of one history search.

    ``matches`` keeps the user's own ranking order (highest play count
    first). It is filled as pages arrive, so it holds the partial result when
    ``timed_out`` is set.
    """

    artist: str
    matches: list[ItemT] = field(default_factory=list)
    searched: int = 0
    pages: int = 0
    failed_pages: int = 0
    timed_out: bool = False

    def top(self, limit: int) -> list[ItemT]:
        return self.matches[:limit]


@dataclass
class SearchLimits:
    """How far a search may go.

    Attributes:
        depth: Maximum number of items to scan; ``None`` scans everything.
        timeout: Seconds before the search gives up; ``None`` waits forever.
        batch_size: Pages requested concurrently.
        batch_interval_ms: Minimum time from the start of one batch to the
            start of the next.
    """

    depth: Optional[int] = 10000
    timeout: Optional[float] = 300.0
    batch_size: int = 5
    batch_interval_ms: int = DEFAULT_BATCH_INTERVAL_MS


async def search_history(
    fetch_page: Callable[[int], Awaitable[Optional[PageT]]],
    items_of: Callable[[PageT], list[ItemT]],
    artist_of: Callable[[ItemT], str],
    artist: str,
    limit: int,
    limits: SearchLimits,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> SearchResult[ItemT]:
    """Scan pages from *fetch_page* for items whose artist is *artist*.

    Artist names are compared case-insensitively. Pages that fail are
    skipped; a batch in which every page failed ends the search.
    """
    result: SearchResult[ItemT] = SearchResult(artist=artist)
    wanted = artist.strip().casefold()
    depth = limits.depth
    max_pages = None if depth is None else depth // PAGE_SIZE + 1
    batch_size = max(1, limits.batch_size)

    async def scan() -> None:
        page = 1
        while depth is None or result.searched < depth:
            last = page + batch_size - 1
            if max_pages is not None:
                last = min(last, max_pages)
            started = clock()
            responses = await asyncio.gather(*(fetch_page(p) for p in range(page, last + 1)))
            result.pages = last

            if all(response is None for response in responses):
                result.failed_pages += len(responses)
                logger.warning("Pages %d-%d could not be fetched, stopping search", page, last)
                return

            for response in responses:
                if response is None:
                    result.failed_pages += 1
                    continue
                page_items = items_of(response)
                if depth is not None:
                    page_items = page_items[: depth - result.searched]
                result.searched += len(page_items)
                result.matches.extend(
                    item for item in page_items if artist_of(item).strip().casefold() == wanted
                )
                if len(items_of(response)) < PAGE_SIZE:
                    return

            if max_pages is not None and last >= max_pages:
                return
            if depth is not None and len(result.matches) >= limit * EARLY_STOP_FACTOR:
                return

            elapsed = clock() - started
            if elapsed > CACHED_BATCH_SECONDS:
                delay = limits.batch_interval_ms / 1000.0 - elapsed
                if delay > 0:
                    await sleep(delay)
            page = last + 1

    try:
        await asyncio.wait_for(scan(), timeout=limits.timeout)
    except asyncio.TimeoutError:
        result.timed_out = True
        logger.info("Search for %s timed out after %s s", artist, limits.timeout)
    logger.debug(
        "Searched %d items on %d pages, %d matches for %s",
        result.searched,
        result.pages,
        len(result.matches),
        artist,
    )
    return result


async def _unthrottled(
    client: CachedClient, search: Callable[[], Awaitable[SearchResult[ItemT]]]
) -> SearchResult[ItemT]:
    previous = client.disable_throttling
    client.disable_throttling = True
    try:
        return await search()
    finally:
        client.disable_throttling = previous


async def search_artist_tracks(
    client: CachedClient,
    username: str,
    artist: str,
    limit: int,
    limits: SearchLimits,
) -> SearchResult[Track]:
    """The user's most played tracks by *artist*, from their overall top tracks."""

    async def fetch(page: int):
        return await client.get_top_tracks(username, "overall", PAGE_SIZE, page)

    return await _unthrottled(
        client,
        lambda: search_history(
            fetch, lambda r: r.tracks, lambda t: t.artist.name, artist, limit, limits
        ),
    )


async def search_artist_albums(
    client: CachedClient,
    username: str,
    artist: str,
    limit: int,
    limits: SearchLimits,
) -> SearchResult[Album]:
    """The user's most played albums by *artist*, from their overall top albums."""

    async def fetch(page: int):
        return await client.get_top_albums(username, "overall", PAGE_SIZE, page)

    return await _unthrottled(
        client,
        lambda: search_history(
            fetch, lambda r: r.albums, lambda a: a.artist.name, artist, limit, limits
        ),
    )
