"""Asynchronous Last.fm web-service client.

This module provides :class:`AsyncClient`, a thin wrapper around
:class:`httpx.AsyncClient` that knows how to call the Last.fm 2.0 REST API:
every request is a GET to the same endpoint with the API method, the API key
and ``format=json`` passed as query parameters.

Last.fm reports most failures with an HTTP 200 (or 4xx) response whose body
is ``{"error": <code>, "message": <text>}``. Those are mapped to
:class:`~lfm.exceptions.ApiError`, or :class:`~lfm.exceptions.NotFoundError`
for error 6 (unknown user or artist). 5xx responses and connection failures
are retried with exponential backoff before being raised.

The client does no caching and no throttling; wrap it in
:class:`~lfm.client.cached_client.CachedClient` for that.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel

from lfm.client.base import LastFmClient
from lfm.exceptions import ApiError, ConnectionError_, NotFoundError, ServerError
from lfm.models import (
    ArtistInfo,
    RecentTracks,
    RequestConfig,
    SimilarArtists,
    TopAlbums,
    TopArtists,
    TopTracks,
    TrackInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://ws.audioscrobbler.com/2.0/"

# Last.fm error codes, see https://www.last.fm/api/errorcodes
ERROR_INVALID_PARAMETERS = 6

ModelT = TypeVar("ModelT", bound=BaseModel)


def _unix(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


class AsyncClient(LastFmClient):
    """Asynchronous client for the Last.fm API.

    Must be used as an async context manager, which owns the underlying
    :class:`httpx.AsyncClient`.

    Args:
        api_key: The Last.fm API key sent with every request.
        base_url: API endpoint. Overridable for tests.
        request: Timeout and retry settings.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with AsyncClient(api_key) as client:
            top = await client.get_top_artists("rj", period="7day", limit=5)
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        request: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._request = request or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        self._client = httpx.AsyncClient(
            timeout=self._request.timeout,
            follow_redirects=True,
            transport=self._transport,
            headers={"User-Agent": "lfm-cli"},
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Last.fm methods
    # ------------------------------------------------------------------ #

    async def get_top_artists(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopArtists]:
        payload = await self.call(
            "user.getTopArtists", user=username, period=period, limit=limit, page=page
        )
        return self._section(payload, "topartists", TopArtists)

    async def get_top_tracks(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopTracks]:
        payload = await self.call(
            "user.getTopTracks", user=username, period=period, limit=limit, page=page
        )
        return self._section(payload, "toptracks", TopTracks)

    async def get_top_albums(
        self, username: str, period: str = "overall", limit: int = 10, page: int = 1
    ) -> Optional[TopAlbums]:
        payload = await self.call(
            "user.getTopAlbums", user=username, period=period, limit=limit, page=page
        )
        return self._section(payload, "topalbums", TopAlbums)

    async def get_artist_top_tracks(
        self, artist: str, limit: int = 10
    ) -> Optional[TopTracks]:
        payload = await self.call(
            "artist.getTopTracks", artist=artist, limit=limit, autocorrect=1
        )
        return self._section(payload, "toptracks", TopTracks)

    async def get_artist_top_albums(
        self, artist: str, limit: int = 10
    ) -> Optional[TopAlbums]:
        payload = await self.call(
            "artist.getTopAlbums", artist=artist, limit=limit, autocorrect=1
        )
        return self._section(payload, "topalbums", TopAlbums)

    async def get_similar_artists(
        self, artist: str, limit: int = 10
    ) -> Optional[SimilarArtists]:
        payload = await self.call(
            "artist.getSimilar", artist=artist, limit=limit, autocorrect=1
        )
        return self._section(payload, "similarartists", SimilarArtists)

    async def get_recent_tracks(
        self,
        username: str,
        from_: datetime,
        to: datetime,
        limit: int = 200,
        page: int = 1,
    ) -> Optional[RecentTracks]:
        payload = await self.call(
            "user.getRecentTracks",
            user=username,
            limit=limit,
            page=page,
            **{"from": _unix(from_), "to": _unix(to)},
        )
        return self._section(payload, "recenttracks", RecentTracks)

    async def get_artist_info(self, artist: str, username: str) -> Optional[ArtistInfo]:
        payload = await self.call(
            "artist.getInfo", artist=artist, username=username, autocorrect=1
        )
        return self._section(payload, "artist", ArtistInfo)

    async def get_track_info(
        self, artist: str, track: str, username: str
    ) -> Optional[TrackInfo]:
        payload = await self.call(
            "track.getInfo", artist=artist, track=track, username=username, autocorrect=1
        )
        return self._section(payload, "track", TrackInfo)

    # ------------------------------------------------------------------ #
    # Request plumbing
    # ------------------------------------------------------------------ #

    async def call(self, method: str, **params: Any) -> dict[str, Any]:
        """Invoke a Last.fm API method and return the decoded JSON body.

        Args:
            method: API method name, e.g. ``"user.getTopArtists"``.
            **params: Method parameters. ``api_key`` and ``format`` are added.

        Returns:
            The decoded JSON object.

        Raises:
            ApiError: Last.fm returned an error payload.
            NotFoundError: HTTP 404 or Last.fm error 6.
            ServerError: 5xx after all retries, or a non-JSON body.
            ConnectionError_: Network / timeout errors after all retries.
        """
        query = {"method": method, **params, "api_key": self._api_key, "format": "json"}
        logger.debug("GET %s method=%s", self._base_url, method)
        response = await self._execute_with_retry(query)
        return self._decode(response, method)

    def _section(
        self, payload: dict[str, Any], name: str, model: type[ModelT]
    ) -> Optional[ModelT]:
        section = payload.get(name)
        if not isinstance(section, dict):
            logger.warning("Response is missing the '%s' section", name)
            return None
        return model.model_validate(section)

    async def _execute_with_retry(self, query: dict[str, Any]) -> httpx.Response:
        """Send the request, retrying on 5xx and connection errors.

        The delay doubles each attempt: 1 s, 2 s, 4 s, ...
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        max_retries = self._request.max_retries
        for attempt in range(max_retries + 1):
            try:
                response = await self._client.get(self._base_url, params=query)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ds (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ds (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                await asyncio.sleep(delay)
                continue
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover

    def _decode(self, response: httpx.Response, method: str) -> dict[str, Any]:
        """Raise a typed exception for error payloads and error status codes."""
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "error" in body:
            code = body.get("error")
            message = body.get("message") or f"Last.fm error {code}"
            if code == ERROR_INVALID_PARAMETERS:
                raise NotFoundError(f"{method}: {message}")
            raise ApiError(f"{method}: {message}", error_code=code)

        status = response.status_code
        if status == 404:
            raise NotFoundError(f"HTTP 404 for {method}")
        if status >= 500:
            raise ServerError(f"HTTP {status} for {method}")
        if status >= 400:
            raise ApiError(f"HTTP {status} for {method}")
        if not isinstance(body, dict):
            raise ServerError(f"Unexpected non-JSON response for {method}")
        return body
