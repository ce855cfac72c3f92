"""Abstract interface shared by every Last.fm client.

Both the raw HTTP client and the caching decorator implement
:class:`LastFmClient`, so the CLI and the aggregation helpers can use either
one without knowing which they hold. Tests substitute a fake implementation
to drive the caching client without a network.

Every operation returns its parsed response model, or ``None`` when Last.fm
answered without the expected section. Implementations may raise
:class:`~lfm.exceptions.LfmError` subclasses for failures; the caching
client never does.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import Optional

from lfm.models import (
    ArtistInfo,
    RecentTracks,
    SimilarArtists,
    TopAlbums,
    TopArtists,
    TopTracks,
    TrackInfo,
)


class LastFmClient(abc.ABC):
    """One async method per supported Last.fm API method.

    Clients are async context managers; the default implementation of the
    context protocol does nothing.
    """

    async def __aenter__(self) -> LastFmClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        return None

    @abc.abstractmethod
    async def get_top_artists(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopArtists]:
        """``user.getTopArtists``"""

    @abc.abstractmethod
    async def get_top_tracks(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopTracks]:
        """``user.getTopTracks``"""

    @abc.abstractmethod
    async def get_top_albums(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopAlbums]:
        """``user.getTopAlbums``"""

    @abc.abstractmethod
    async def get_artist_top_tracks(
        self, artist: str, limit: int = 10
    ) -> Optional[TopTracks]:
        """``artist.getTopTracks``"""

    @abc.abstractmethod
    async def get_artist_top_albums(
        self, artist: str, limit: int = 10
    ) -> Optional[TopAlbums]:
        """``artist.getTopAlbums``"""

    @abc.abstractmethod
    async def get_similar_artists(
        self, artist: str, limit: int = 10
    ) -> Optional[SimilarArtists]:
        """``artist.getSimilar``"""

    @abc.abstractmethod
    async def get_recent_tracks(
        self,
        username: str,
        from_: datetime,
        to: datetime,
        limit: int = 200,
        page: int = 1,
    ) -> Optional[RecentTracks]:
        """``user.getRecentTracks`` restricted to scrobbles between *from_* and *to*."""

    @abc.abstractmethod
    async def get_artist_info(self, artist: str, username: str) -> Optional[ArtistInfo]:
        """``artist.getInfo`` including *username*'s play count."""

    @abc.abstractmethod
    async def get_track_info(
        self, artist: str, track: str, username: str
    ) -> Optional[TrackInfo]:
        """``track.getInfo`` including *username*'s play count and loved flag."""
