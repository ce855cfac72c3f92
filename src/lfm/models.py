"""Canonical Pydantic models shared across all lfm modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`CacheConfig`, and :class:`LfmConfig`.

**Cache models** -- the on-disk entry format and the values the cache layer
hands back to callers:
    :class:`CacheBehavior`, :class:`CacheEntry`, :class:`CacheLookup`,
    :class:`CacheStatistics`, and :class:`TimingRecord`.

**Last.fm response models** -- the JSON sections returned by the Last.fm web
service, e.g. the ``topartists`` object of ``user.getTopArtists``:
    :class:`TopArtists`, :class:`TopTracks`, :class:`TopAlbums`,
    :class:`SimilarArtists`, :class:`RecentTracks`, :class:`ArtistInfo` and
    :class:`TrackInfo`.

Last.fm uses keys such as ``@attr`` and ``#text`` that are not valid Python
identifiers, so the response models map them through aliases. Serialising
with ``by_alias=True`` reproduces the upstream wire format, which is what the
cache stores.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP request settings applied to every Last.fm call."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    max_retries: int = Field(
        default=2, description="Retries on 5xx and connection errors"
    )


class CacheConfig(BaseModel):
    """Disk cache settings stored in :class:`LfmConfig`.

    The size and file budgets are soft limits: the cleanup scheduler only
    evicts once usage passes 80% of either, and eviction is approximate
    (expired entries first, then oldest-stored first).
    """

    enabled: bool = Field(default=True, description="Enable response caching")
    expiry_minutes: int = Field(
        default=10, description="Freshness window for newly stored entries"
    )
    max_size_mb: int = Field(default=100, description="Cache size budget in MiB")
    max_files: int = Field(default=10000, description="Cache file-count budget")
    max_age_days: int = Field(
        default=30, description="Entries older than this are evicted on cleanup"
    )
    cleanup_interval_hours: int = Field(
        default=24, description="Minimum hours between opportunistic cleanups"
    )
    last_cleanup: Optional[datetime] = Field(
        default=None, description="When the last cleanup completed (UTC)"
    )

    @field_validator("last_cleanup")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class LfmConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/lfm/config.json``.

    Loaded and saved by :func:`~lfm.config.load_config` and
    :func:`~lfm.config.save_config`. Environment variables and CLI flags
    take precedence over the values stored here; see
    :func:`~lfm.config.resolve_config`.
    """

    api_key: str = Field(default="", description="Last.fm API key")
    default_username: str = Field(
        default="", description="User queried when --user is omitted"
    )
    default_period: str = Field(
        default="overall",
        description="overall, 7day, 1month, 3month, 6month or 12month",
    )
    default_limit: int = Field(default=10, description="Items per ranking")
    api_throttle_ms: int = Field(
        default=100, description="Minimum milliseconds between network calls"
    )
    normal_search_depth: int = Field(
        default=10000,
        description="Items scanned by artist-tracks/artist-albums without --deep",
    )
    deep_search_timeout_seconds: int = Field(
        default=300, description="Time limit of an artist history search"
    )
    parallel_api_calls: int = Field(
        default=5, description="Pages fetched concurrently by an artist history search"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


# --- Cache layer ---


class CacheBehavior(str, enum.Enum):
    """How the caching client treats stored entries for one session.

    ``normal`` serves fresh entries and refreshes stale ones,
    ``force-cache`` serves any stored entry regardless of age,
    ``force-api`` always calls the network and refreshes the entry,
    ``no-cache`` neither reads nor writes the cache.
    """

    NORMAL = "normal"
    FORCE_CACHE = "force-cache"
    FORCE_API = "force-api"
    NO_CACHE = "no-cache"


class CacheEntry(BaseModel):
    """One stored response as written to ``<cache_dir>/<key>.json``."""

    key: str
    payload: str = Field(description="Serialised JSON of the cached response")
    stored_at: datetime
    expires_at: datetime
    size_bytes: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CacheLookup(BaseModel):
    """A stored payload together with whether it is still inside its freshness window."""

    payload: str
    is_fresh: bool


class CacheStatistics(BaseModel):
    """Aggregate view of the cache directory, recomputed on every request.

    ``file_count`` counts every entry file on disk while ``entry_count``
    counts only those that could be read back, so the difference is the
    number of corrupt entries.
    """

    entry_count: int = 0
    file_count: int = 0
    total_size_bytes: int = 0
    expired_count: int = 0
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None
    storage_location: str = ""


class TimingRecord(BaseModel):
    """Diagnostic record appended by the caching client for each logical call."""

    operation: str
    cache_hit: bool
    elapsed_ms: float
    detail: str = ""


# --- Last.fm responses ---


class _LastFmModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RankAttributes(_LastFmModel):
    rank: str = ""


class ArtistRef(_LastFmModel):
    """Artist reference embedded in top-track and top-album items."""

    name: str = ""
    mbid: str = ""
    url: str = ""


class TextRef(_LastFmModel):
    """Reference in the ``{"#text": ..., "mbid": ...}`` shape used by recent tracks."""

    text: str = Field(default="", alias="#text")
    mbid: str = ""


class PageAttributes(_LastFmModel):
    """Pagination block (``@attr``) of a list response.

    Last.fm sends every number in this block as a string.
    """

    user: str = ""
    artist: str = ""
    page: str = "1"
    per_page: str = Field(default="0", alias="perPage")
    total_pages: str = Field(default="1", alias="totalPages")
    total: str = "0"

    @property
    def page_count(self) -> int:
        try:
            return int(self.total_pages)
        except ValueError:
            return 1


class Artist(_LastFmModel):
    name: str
    playcount: str = "0"
    url: str = ""
    mbid: str = ""
    attributes: Optional[RankAttributes] = Field(default=None, alias="@attr")


class Track(_LastFmModel):
    name: str
    playcount: str = "0"
    url: str = ""
    mbid: str = ""
    artist: ArtistRef = Field(default_factory=ArtistRef)
    attributes: Optional[RankAttributes] = Field(default=None, alias="@attr")


class Album(_LastFmModel):
    name: str
    playcount: str = "0"
    url: str = ""
    mbid: str = ""
    artist: ArtistRef = Field(default_factory=ArtistRef)
    attributes: Optional[RankAttributes] = Field(default=None, alias="@attr")


class SimilarArtist(_LastFmModel):
    name: str
    mbid: str = ""
    url: str = ""
    match: str = "0"


class TopArtists(_LastFmModel):
    """The ``topartists`` section of ``user.getTopArtists``."""

    artists: list[Artist] = Field(default_factory=list, alias="artist")
    attributes: PageAttributes = Field(default_factory=PageAttributes, alias="@attr")


class TopTracks(_LastFmModel):
    """The ``toptracks`` section of ``user.getTopTracks`` and ``artist.getTopTracks``."""

    tracks: list[Track] = Field(default_factory=list, alias="track")
    attributes: PageAttributes = Field(default_factory=PageAttributes, alias="@attr")


class TopAlbums(_LastFmModel):
    """The ``topalbums`` section of ``user.getTopAlbums`` and ``artist.getTopAlbums``."""

    albums: list[Album] = Field(default_factory=list, alias="album")
    attributes: PageAttributes = Field(default_factory=PageAttributes, alias="@attr")


class SimilarArtists(_LastFmModel):
    """The ``similarartists`` section of ``artist.getSimilar``."""

    artists: list[SimilarArtist] = Field(default_factory=list, alias="artist")
    attributes: PageAttributes = Field(default_factory=PageAttributes, alias="@attr")


class NowPlayingAttributes(_LastFmModel):
    nowplaying: str = ""


class ScrobbleDate(_LastFmModel):
    uts: str = ""
    text: str = Field(default="", alias="#text")


class RecentTrack(_LastFmModel):
    """One scrobble from ``user.getRecentTracks``."""

    name: str
    url: str = ""
    mbid: str = ""
    artist: TextRef = Field(default_factory=TextRef)
    album: TextRef = Field(default_factory=TextRef)
    date: Optional[ScrobbleDate] = None
    attributes: Optional[NowPlayingAttributes] = Field(default=None, alias="@attr")

    @property
    def is_now_playing(self) -> bool:
        """The track currently playing is listed first but is not a completed scrobble."""
        return (
            self.attributes is not None
            and self.attributes.nowplaying.lower() == "true"
        )


class RecentTracks(_LastFmModel):
    """The ``recenttracks`` section of ``user.getRecentTracks``."""

    tracks: list[RecentTrack] = Field(default_factory=list, alias="track")
    attributes: PageAttributes = Field(default_factory=PageAttributes, alias="@attr")


# --- Per-user lookups (artist.getInfo, track.getInfo) ---


class Tag(_LastFmModel):
    name: str = ""
    url: str = ""


class TagList(_LastFmModel):
    """``{"tag": [...]}`` block. Last.fm sends a lone tag as an object, not a list."""

    tags: list[Tag] = Field(default_factory=list, alias="tag")

    @field_validator("tags", mode="before")
    @classmethod
    def _single_tag(cls, value: object) -> object:
        if isinstance(value, dict):
            return [value]
        return value


def _count(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


class ArtistStats(_LastFmModel):
    listeners: str = "0"
    playcount: str = "0"
    userplaycount: str = "0"


class ArtistInfo(_LastFmModel):
    """The ``artist`` section of ``artist.getInfo`` requested for a user."""

    name: str = ""
    url: str = ""
    mbid: str = ""
    stats: ArtistStats = Field(default_factory=ArtistStats)
    tags: Optional[TagList] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _no_tags(cls, value: object) -> object:
        # an artist without tags comes back as "tags": ""
        return None if isinstance(value, str) else value

    @property
    def user_playcount(self) -> int:
        return _count(self.stats.userplaycount)

    @property
    def global_playcount(self) -> int:
        return _count(self.stats.playcount)


class TrackAlbum(_LastFmModel):
    title: str = ""
    artist: str = ""
    url: str = ""


class TrackInfo(_LastFmModel):
    """The ``track`` section of ``track.getInfo`` requested for a user."""

    name: str = ""
    url: str = ""
    mbid: str = ""
    duration: str = "0"
    listeners: str = "0"
    playcount: str = "0"
    userplaycount: str = "0"
    userloved: str = "0"
    artist: ArtistRef = Field(default_factory=ArtistRef)
    album: Optional[TrackAlbum] = None
    toptags: Optional[TagList] = None

    @field_validator("toptags", "album", mode="before")
    @classmethod
    def _empty_block(cls, value: object) -> object:
        return None if isinstance(value, str) else value

    @property
    def user_playcount(self) -> int:
        return _count(self.userplaycount)

    @property
    def global_playcount(self) -> int:
        return _count(self.playcount)

    @property
    def loved(self) -> bool:
        return self.userloved == "1"

    @property
    def duration_seconds(self) -> int:
        """Length in whole seconds; Last.fm reports milliseconds, ``0`` when unknown."""
        return _count(self.duration) // 1000
