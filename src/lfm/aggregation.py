"""Top lists for arbitrary date ranges.

Last.fm's ``user.getTop*`` methods only accept fixed periods (``7day``,
``1month``, ...). For any other range the scrobbles are fetched page by page
through ``user.getRecentTracks`` and counted locally. Going through a
:class:`~lfm.client.base.LastFmClient` means that, with a
:class:`~lfm.client.cached_client.CachedClient`, every page is cached and
throttled individually, so re-running the same range is free.

Counting is case-insensitive: ``"Radiohead"`` and ``"radiohead"`` are the
same artist, and the spelling seen first is the one reported. Ties keep the
order in which the items were first seen.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

from lfm.client.base import LastFmClient
from lfm.models import (
    Album,
    Artist,
    ArtistRef,
    PageAttributes,
    RankAttributes,
    RecentTrack,
    TopAlbums,
    TopArtists,
    TopTracks,
    Track,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 200


async def collect_scrobbles(
    client: LastFmClient,
    username: str,
    from_: datetime,
    to: datetime,
    page_size: int = PAGE_SIZE,
) -> Optional[list[RecentTrack]]:
    """Fetch every completed scrobble between *from_* and *to*.

    The currently playing track is dropped. Pages are requested one after
    another until the reported page count is reached or a page comes back
    empty.

    Returns:
        The scrobbles, or ``None`` if the first page could not be fetched.
        A failure on a later page ends paging and keeps what was collected.
    """
    scrobbles: list[RecentTrack] = []
    page = 1
    while True:
        response = await client.get_recent_tracks(username, from_, to, page_size, page)
        if response is None:
            if page == 1:
                return None
            logger.warning("Stopped paging recent tracks at page %d", page)
            break
        scrobbles.extend(t for t in response.tracks if not t.is_now_playing)
        if not response.tracks or page >= response.attributes.page_count:
            break
        page += 1
    logger.debug("Collected %d scrobbles over %d pages", len(scrobbles), page)
    return scrobbles


def _rank(
    scrobbles: list[RecentTrack],
    group: Callable[[RecentTrack], Optional[tuple[str, ...]]],
    limit: int,
) -> list[tuple[tuple[str, ...], int]]:
    counts: Counter[tuple[str, ...]] = Counter()
    labels: dict[tuple[str, ...], tuple[str, ...]] = {}
    for scrobble in scrobbles:
        label = group(scrobble)
        if label is None:
            continue
        identity = tuple(part.casefold() for part in label)
        counts[identity] += 1
        labels.setdefault(identity, label)
    return [(labels[identity], n) for identity, n in counts.most_common(limit)]


def _attributes(username: str, count: int) -> PageAttributes:
    return PageAttributes(
        user=username, page="1", per_page=str(count), total_pages="1", total=str(count)
    )


def rank_artists(scrobbles: list[RecentTrack], limit: int, username: str = "") -> TopArtists:
    ranked = _rank(
        scrobbles, lambda s: (s.artist.text,) if s.artist.text else None, limit
    )
    artists = [
        Artist(
            name=label[0],
            playcount=str(n),
            attributes=RankAttributes(rank=str(i)),
        )
        for i, (label, n) in enumerate(ranked, start=1)
    ]
    return TopArtists(artists=artists, attributes=_attributes(username, len(artists)))


def rank_tracks(scrobbles: list[RecentTrack], limit: int, username: str = "") -> TopTracks:
    ranked = _rank(
        scrobbles,
        lambda s: (s.name, s.artist.text) if s.name else None,
        limit,
    )
    tracks = [
        Track(
            name=label[0],
            playcount=str(n),
            artist=ArtistRef(name=label[1]),
            attributes=RankAttributes(rank=str(i)),
        )
        for i, (label, n) in enumerate(ranked, start=1)
    ]
    return TopTracks(tracks=tracks, attributes=_attributes(username, len(tracks)))


def rank_albums(scrobbles: list[RecentTrack], limit: int, username: str = "") -> TopAlbums:
    ranked = _rank(
        scrobbles,
        lambda s: (s.album.text, s.artist.text) if s.album.text else None,
        limit,
    )
    albums = [
        Album(
            name=label[0],
            playcount=str(n),
            artist=ArtistRef(name=label[1]),
            attributes=RankAttributes(rank=str(i)),
        )
        for i, (label, n) in enumerate(ranked, start=1)
    ]
    return TopAlbums(albums=albums, attributes=_attributes(username, len(albums)))


async def top_artists_for_range(
    client: LastFmClient, username: str, from_: datetime, to: datetime, limit: int
) -> Optional[TopArtists]:
    scrobbles = await collect_scrobbles(client, username, from_, to)
    if scrobbles is None:
        return None
    return rank_artists(scrobbles, limit, username)


async def top_tracks_for_range(
    client: LastFmClient, username: str, from_: datetime, to: datetime, limit: int
) -> Optional[TopTracks]:
    scrobbles = await collect_scrobbles(client, username, from_, to)
    if scrobbles is None:
        return None
    return rank_tracks(scrobbles, limit, username)


async def top_albums_for_range(
    client: LastFmClient, username: str, from_: datetime, to: datetime, limit: int
) -> Optional[TopAlbums]:
    scrobbles = await collect_scrobbles(client, username, from_, to)
    if scrobbles is None:
        return None
    return rank_albums(scrobbles, limit, username)


def format_date_range(from_: datetime, to: datetime) -> str:
    return f"{from_:%Y-%m-%d} to {to:%Y-%m-%d}"
