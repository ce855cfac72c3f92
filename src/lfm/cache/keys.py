"""Cache key derivation for Last.fm operations.

A cache key is the SHA-256 hex digest of a JSON array holding the operation
name followed by its normalised parameters::

    ["user.gettopartists", "rj", "7day", 10, 1]

Encoding the tuple as JSON rather than joining with a separator means no
combination of parameter values can produce the same key as a different
combination. Only parameters that change the response are included; the API
key and response format never are.

Normalisation rules:

* ``str`` -- stripped and lower-cased (Last.fm names are case-insensitive)
* ``bool`` -- JSON ``true`` / ``false``
* ``int`` -- kept as-is
* ``datetime`` -- converted to UTC ISO-8601 (naive values are taken as UTC)
* ``date`` -- ISO-8601

Anything else, including ``None``, raises :class:`ValueError`.

The resulting 64-character lowercase hex string is safe to use directly as a
file name.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date, datetime, timezone
from typing import Any

TOP_ARTISTS = "user.getTopArtists"
TOP_TRACKS = "user.getTopTracks"
TOP_ALBUMS = "user.getTopAlbums"
ARTIST_TOP_TRACKS = "artist.getTopTracks"
ARTIST_TOP_ALBUMS = "artist.getTopAlbums"
SIMILAR_ARTISTS = "artist.getSimilar"
RECENT_TRACKS = "user.getRecentTracks"
ARTIST_INFO = "artist.getInfo"
TRACK_INFO = "track.getInfo"


def _normalize(value: Any) -> Any:
    if value is None:
        raise ValueError("Cache key parameters cannot be None")
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip().lower()
    raise ValueError(
        f"Unsupported cache key parameter type: {type(value).__name__}"
    )


def make_key(operation: str, *params: Any) -> str:
    """Derive the cache key for *operation* called with *params*.

    Args:
        operation: The Last.fm method name, e.g. ``"user.getTopArtists"``.
        *params: The response-affecting parameters, in a fixed order per
            operation.

    Returns:
        A 64-character lowercase hexadecimal string.

    Raises:
        ValueError: If *operation* is empty or a parameter is ``None`` or of
            an unsupported type.
    """
    if not operation or not operation.strip():
        raise ValueError("Cache key operation cannot be empty")
    parts = [operation.strip().lower()]
    parts.extend(_normalize(p) for p in params)
    raw = json.dumps(parts, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _require(name: str, value: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} cannot be empty")
    return value


# --- Per-operation builders ---


def top_artists_key(user: str, period: str, limit: int, page: int = 1) -> str:
    return make_key(
        TOP_ARTISTS, _require("user", user), _require("period", period), limit, page
    )


def top_tracks_key(user: str, period: str, limit: int, page: int = 1) -> str:
    return make_key(
        TOP_TRACKS, _require("user", user), _require("period", period), limit, page
    )


def top_albums_key(user: str, period: str, limit: int, page: int = 1) -> str:
    return make_key(
        TOP_ALBUMS, _require("user", user), _require("period", period), limit, page
    )


def artist_top_tracks_key(artist: str, limit: int) -> str:
    # artist lookups are always sent with autocorrect=1
    return make_key(ARTIST_TOP_TRACKS, _require("artist", artist), limit, True)


def artist_top_albums_key(artist: str, limit: int) -> str:
    return make_key(ARTIST_TOP_ALBUMS, _require("artist", artist), limit, True)


def similar_artists_key(artist: str, limit: int) -> str:
    return make_key(SIMILAR_ARTISTS, _require("artist", artist), limit, True)


def recent_tracks_key(
    user: str,
    from_: datetime,
    to: datetime,
    limit: int,
    page: int = 1,
) -> str:
    """Key for one page of scrobbles between *from_* and *to*.

    Both bounds are part of the key down to the second, so two ranges that
    fall on the same calendar days but differ in time never share an entry.
    """
    return make_key(RECENT_TRACKS, _require("user", user), from_, to, limit, page)


def artist_info_key(artist: str, user: str) -> str:
    return make_key(ARTIST_INFO, _require("artist", artist), _require("user", user), True)


def track_info_key(artist: str, track: str, user: str) -> str:
    return make_key(
        TRACK_INFO,
        _require("artist", artist),
        _require("track", track),
        _require("user", user),
        True,
    )
