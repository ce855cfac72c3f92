"""Tests for the raw Last.fm HTTP client."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import httpx
import pytest

from lfm.client.async_client import DEFAULT_BASE_URL, AsyncClient
from lfm.exceptions import ApiError, ConnectionError_, NotFoundError, ServerError
from lfm.models import RequestConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_response(data: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code=status_code, json=data)


def _client(handler: Callable[[httpx.Request], httpx.Response], max_retries: int = 0) -> AsyncClient:
    return AsyncClient(
        "test-key",
        request=RequestConfig(timeout=5, max_retries=max_retries),
        transport=httpx.MockTransport(handler),
    )


TOP_ARTISTS = {
    "topartists": {
        "artist": [
            {
                "name": "Boards of Canada",
                "playcount": "412",
                "url": "https://www.last.fm/music/Boards+of+Canada",
                "mbid": "69158f97-4c07-4c4e-baf8-4e4ab1ed666e",
                "@attr": {"rank": "1"},
            },
            {"name": "Autechre", "playcount": "300", "@attr": {"rank": "2"}},
        ],
        "@attr": {"user": "rj", "page": "1", "perPage": "2", "totalPages": "50", "total": "100"},
    }
}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequestParameters:
    @pytest.mark.asyncio
    async def test_user_method_parameters(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(TOP_ARTISTS)

        async with _client(handler) as client:
            await client.get_top_artists("rj", "7day", 2, 3)

        params = seen[0].url.params
        assert str(seen[0].url).startswith(DEFAULT_BASE_URL)
        assert params["method"] == "user.getTopArtists"
        assert params["user"] == "rj"
        assert params["period"] == "7day"
        assert params["limit"] == "2"
        assert params["page"] == "3"
        assert params["api_key"] == "test-key"
        assert params["format"] == "json"

    @pytest.mark.asyncio
    async def test_artist_methods_autocorrect(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response({"similarartists": {"artist": [{"name": "Plaid", "match": "0.9"}]}})

        async with _client(handler) as client:
            result = await client.get_similar_artists("Autechre", 5)

        assert seen[0].url.params["method"] == "artist.getSimilar"
        assert seen[0].url.params["autocorrect"] == "1"
        assert result is not None
        assert result.artists[0].match == "0.9"

    @pytest.mark.asyncio
    async def test_recent_tracks_sends_unix_range(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response({"recenttracks": {"track": []}})

        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        end = datetime(2024, 1, 2, tzinfo=timezone.utc)
        async with _client(handler) as client:
            await client.get_recent_tracks("rj", start, end, 200, 1)

        params = seen[0].url.params
        assert params["from"] == "1704067200"
        assert params["to"] == "1704153600"


class TestResponseParsing:
    @pytest.mark.asyncio
    async def test_top_artists_parsed(self) -> None:
        async with _client(lambda r: _json_response(TOP_ARTISTS)) as client:
            result = await client.get_top_artists("rj")

        assert result is not None
        assert [a.name for a in result.artists] == ["Boards of Canada", "Autechre"]
        assert result.artists[0].attributes is not None
        assert result.artists[0].attributes.rank == "1"
        assert result.attributes.page_count == 50

    @pytest.mark.asyncio
    async def test_missing_section_returns_none(self) -> None:
        async with _client(lambda r: _json_response({"unexpected": {}})) as client:
            assert await client.get_top_tracks("rj") is None

    @pytest.mark.asyncio
    async def test_recent_tracks_now_playing(self) -> None:
        body = {
            "recenttracks": {
                "track": [
                    {
                        "name": "Roygbiv",
                        "artist": {"#text": "Boards of Canada", "mbid": ""},
                        "album": {"#text": "Music Has the Right to Children"},
                        "@attr": {"nowplaying": "true"},
                    },
                    {
                        "name": "Gantz Graf",
                        "artist": {"#text": "Autechre"},
                        "album": {"#text": "Gantz Graf"},
                        "date": {"uts": "1704067200", "#text": "01 Jan 2024, 00:00"},
                    },
                ],
                "@attr": {"totalPages": "1"},
            }
        }
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        async with _client(lambda r: _json_response(body)) as client:
            result = await client.get_recent_tracks("rj", start, start)

        assert result is not None
        assert result.tracks[0].is_now_playing
        assert not result.tracks[1].is_now_playing
        assert result.tracks[1].artist.text == "Autechre"

    @pytest.mark.asyncio
    async def test_artist_info_for_user(self) -> None:
        seen: list[httpx.Request] = []
        body = {
            "artist": {
                "name": "Low",
                "stats": {"listeners": "800000", "playcount": "30000000", "userplaycount": "1234"},
                "tags": {"tag": {"name": "slowcore", "url": ""}},
            }
        }

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _json_response(body)

        async with _client(handler) as client:
            info = await client.get_artist_info("Low", "rj")

        params = seen[0].url.params
        assert params["method"] == "artist.getInfo"
        assert params["username"] == "rj"
        assert info is not None
        assert info.user_playcount == 1234
        assert info.global_playcount == 30000000
        assert [t.name for t in info.tags.tags] == ["slowcore"]

    @pytest.mark.asyncio
    async def test_track_info_for_user(self) -> None:
        body = {
            "track": {
                "name": "Words",
                "duration": "355000",
                "playcount": "90000",
                "userplaycount": "0",
                "userloved": "0",
                "artist": {"name": "Low"},
                "toptags": "",
            }
        }
        async with _client(lambda r: _json_response(body)) as client:
            info = await client.get_track_info("Low", "Words", "rj")

        assert info is not None
        assert info.user_playcount == 0
        assert not info.loved
        assert info.duration_seconds == 355
        assert info.album is None
        assert info.toptags is None


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_error_payload_raises_api_error(self) -> None:
        body = {"error": 29, "message": "Rate Limit Exceeded"}
        async with _client(lambda r: _json_response(body)) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get_top_artists("rj")
        assert exc_info.value.error_code == 29
        assert "Rate Limit Exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unknown_user_raises_not_found(self) -> None:
        body = {"error": 6, "message": "User not found"}
        async with _client(lambda r: _json_response(body, 404)) as client:
            with pytest.raises(NotFoundError):
                await client.get_top_artists("nobody")

    @pytest.mark.asyncio
    async def test_invalid_api_key_payload_on_403(self) -> None:
        body = {"error": 10, "message": "Invalid API key"}
        async with _client(lambda r: _json_response(body, 403)) as client:
            with pytest.raises(ApiError) as exc_info:
                await client.get_top_artists("rj")
        assert exc_info.value.error_code == 10

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        async with _client(lambda r: httpx.Response(502, text="Bad Gateway")) as client:
            with pytest.raises(ServerError):
                await client.get_top_artists("rj")

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(ServerError):
                await client.get_top_artists("rj")

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ConnectionError_):
                await client.get_top_artists("rj")


class TestRetry:
    @pytest.mark.asyncio
    async def test_retries_server_errors(self, monkeypatch: pytest.MonkeyPatch) -> None:
        sleeps: list[float] = []

        async def _no_sleep(delay: float) -> None:
            sleeps.append(delay)

        monkeypatch.setattr("lfm.client.async_client.asyncio.sleep", _no_sleep)
        responses = iter([httpx.Response(503), _json_response(TOP_ARTISTS)])

        async with _client(lambda r: next(responses), max_retries=2) as client:
            result = await client.get_top_artists("rj")

        assert result is not None
        assert sleeps == [1]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def _no_sleep(delay: float) -> None:
            return None

        monkeypatch.setattr("lfm.client.async_client.asyncio.sleep", _no_sleep)
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ReadTimeout("slow", request=request)

        async with _client(handler, max_retries=2) as client:
            with pytest.raises(ConnectionError_):
                await client.get_top_artists("rj")
        assert calls == 3


class TestContextManager:
    @pytest.mark.asyncio
    async def test_enter_and_exit(self) -> None:
        client = _client(lambda r: _json_response(TOP_ARTISTS))
        assert client._client is None
        async with client:
            assert client._client is not None
        assert client._client is None
