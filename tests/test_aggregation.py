"""Tests for lfm.aggregation -- date-range top lists built from scrobbles."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import FakeLastFmClient
from lfm.aggregation import (
    collect_scrobbles,
    format_date_range,
    rank_albums,
    rank_artists,
    rank_tracks,
    top_artists_for_range,
    top_tracks_for_range,
)
from lfm.models import (
    NowPlayingAttributes,
    PageAttributes,
    RecentTrack,
    RecentTracks,
    ScrobbleDate,
    TextRef,
)

START = datetime(2024, 1, 1, tzinfo=timezone.utc)
END = datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


def _scrobble(artist: str, track: str = "Song", album: str = "", now_playing: bool = False) -> RecentTrack:
    return RecentTrack(
        name=track,
        artist=TextRef(text=artist),
        album=TextRef(text=album),
        date=None if now_playing else ScrobbleDate(uts="1704067200"),
        attributes=NowPlayingAttributes(nowplaying="true") if now_playing else None,
    )


def _page(tracks: list[RecentTrack], total_pages: int = 1) -> RecentTracks:
    return RecentTracks(
        tracks=tracks, attributes=PageAttributes(total_pages=str(total_pages))
    )


class TestCollectScrobbles:
    @pytest.mark.asyncio
    async def test_pages_until_total(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue(
            "get_recent_tracks",
            _page([_scrobble("A"), _scrobble("B")], total_pages=2),
            _page([_scrobble("C")], total_pages=2),
        )
        scrobbles = await collect_scrobbles(fake_client, "rj", START, END)

        assert [s.artist.text for s in scrobbles] == ["A", "B", "C"]
        pages = [args[4] for name, args in fake_client.calls]
        assert pages == [1, 2]

    @pytest.mark.asyncio
    async def test_now_playing_is_dropped(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue(
            "get_recent_tracks",
            _page([_scrobble("Live", now_playing=True), _scrobble("Done")]),
        )
        scrobbles = await collect_scrobbles(fake_client, "rj", START, END)
        assert [s.artist.text for s in scrobbles] == ["Done"]

    @pytest.mark.asyncio
    async def test_empty_page_stops_paging(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue("get_recent_tracks", _page([], total_pages=5))
        assert await collect_scrobbles(fake_client, "rj", START, END) == []
        assert fake_client.count("get_recent_tracks") == 1

    @pytest.mark.asyncio
    async def test_first_page_failure_returns_none(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue("get_recent_tracks", None)
        assert await collect_scrobbles(fake_client, "rj", START, END) is None

    @pytest.mark.asyncio
    async def test_later_failure_keeps_collected(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue(
            "get_recent_tracks", _page([_scrobble("A")], total_pages=3), None
        )
        scrobbles = await collect_scrobbles(fake_client, "rj", START, END)
        assert [s.artist.text for s in scrobbles] == ["A"]


class TestRanking:
    def test_artists_ranked_by_count(self) -> None:
        scrobbles = [_scrobble("B"), _scrobble("A"), _scrobble("A"), _scrobble("C")]
        top = rank_artists(scrobbles, 10, "rj")

        assert [a.name for a in top.artists] == ["A", "B", "C"]
        assert [a.playcount for a in top.artists] == ["2", "1", "1"]
        assert [a.attributes.rank for a in top.artists] == ["1", "2", "3"]
        assert top.attributes.user == "rj"

    def test_case_insensitive_keeps_first_spelling(self) -> None:
        scrobbles = [_scrobble("Radiohead"), _scrobble("radiohead"), _scrobble("RADIOHEAD")]
        top = rank_artists(scrobbles, 10)
        assert len(top.artists) == 1
        assert top.artists[0].name == "Radiohead"
        assert top.artists[0].playcount == "3"

    def test_limit(self) -> None:
        scrobbles = [_scrobble(name) for name in "ABCDE"]
        assert len(rank_artists(scrobbles, 2).artists) == 2

    def test_tracks_grouped_by_name_and_artist(self) -> None:
        scrobbles = [
            _scrobble("Low", "Words"),
            _scrobble("Other", "Words"),
            _scrobble("low", "words"),
        ]
        top = rank_tracks(scrobbles, 10)
        assert [(t.name, t.artist.name, t.playcount) for t in top.tracks] == [
            ("Words", "Low", "2"),
            ("Words", "Other", "1"),
        ]

    def test_separator_characters_do_not_merge_tracks(self) -> None:
        scrobbles = [_scrobble("c", "a|b"), _scrobble("b|c", "a")]
        top = rank_tracks(scrobbles, 10)
        assert sorted((t.name, t.artist.name, t.playcount) for t in top.tracks) == [
            ("a", "b|c", "1"),
            ("a|b", "c", "1"),
        ]

    def test_albums_skip_scrobbles_without_album(self) -> None:
        scrobbles = [
            _scrobble("Low", album="Things We Lost in the Fire"),
            _scrobble("Low"),
            _scrobble("Low", album="Things We Lost in the Fire"),
        ]
        top = rank_albums(scrobbles, 10)
        assert len(top.albums) == 1
        assert top.albums[0].playcount == "2"
        assert top.albums[0].artist.name == "Low"


class TestForRange:
    @pytest.mark.asyncio
    async def test_top_artists_for_range(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue(
            "get_recent_tracks", _page([_scrobble("A"), _scrobble("B"), _scrobble("B")])
        )
        top = await top_artists_for_range(fake_client, "rj", START, END, 5)
        assert [a.name for a in top.artists] == ["B", "A"]

    @pytest.mark.asyncio
    async def test_failure_propagates_as_none(self, fake_client: FakeLastFmClient) -> None:
        fake_client.queue("get_recent_tracks", None)
        assert await top_tracks_for_range(fake_client, "rj", START, END, 5) is None


def test_format_date_range() -> None:
    assert format_date_range(START, END) == "2024-01-01 to 2024-01-31"
