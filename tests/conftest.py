"""Shared test fixtures for lfm.

Provides isolated config environments, a controllable clock for expiry
tests, a fake Last.fm client for driving the caching layer, and a CLI
runner. These fixtures are discovered by pytest automatically.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

import pytest

from lfm.client.base import LastFmClient
from lfm.models import (
    Artist,
    ArtistInfo,
    RecentTracks,
    SimilarArtists,
    TopAlbums,
    TopArtists,
    TopTracks,
    TrackInfo,
)
from lfm.output import OutputFormat, OutputManager, reset_output, set_output
from lfm.runtime import reset_gate


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_globals_between_tests() -> None:
    """Reset the global OutputManager and throttle gate after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams and the
    test finishes, the cached references become stale. The gate holds an
    asyncio.Lock that must not outlive the event loop of one test.
    """
    yield
    reset_output()
    reset_gate()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME and XDG_DATA_HOME to
    subdirectories of tmp_path and clears the LFM_* environment
    variables so tests never touch real user config.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("lfm.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["LFM_API_KEY", "LFM_USER"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Simulated time
# ---------------------------------------------------------------------------


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Fake Last.fm client
# ---------------------------------------------------------------------------


def make_top_artists(*names: str) -> TopArtists:
    return TopArtists(
        artists=[Artist(name=n, playcount=str(100 - i)) for i, n in enumerate(names)]
    )


class FakeLastFmClient(LastFmClient):
    """In-memory :class:`LastFmClient` that counts calls.

    ``responses`` holds the values to return per method name, consumed in
    order; the last one repeats. A value that is an exception instance is
    raised instead of returned.
    """

    def __init__(self) -> None:
        self.responses: dict[str, list[object]] = {}
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.entered = False
        self.exited = False

    def queue(self, method: str, *values: object) -> None:
        self.responses.setdefault(method, []).extend(values)

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def __aenter__(self) -> FakeLastFmClient:
        self.entered = True
        return self

    async def __aexit__(self, *args: object) -> None:
        self.exited = True

    async def _answer(self, method: str, *args: object) -> object:
        self.calls.append((method, args))
        queued = self.responses.get(method) or [None]
        value = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(value, BaseException):
            raise value
        return value

    async def get_top_artists(self, username, period="overall", limit=10, page=1) -> Optional[TopArtists]:
        return await self._answer("get_top_artists", username, period, limit, page)

    async def get_top_tracks(self, username, period="overall", limit=10, page=1) -> Optional[TopTracks]:
        return await self._answer("get_top_tracks", username, period, limit, page)

    async def get_top_albums(self, username, period="overall", limit=10, page=1) -> Optional[TopAlbums]:
        return await self._answer("get_top_albums", username, period, limit, page)

    async def get_artist_top_tracks(self, artist, limit=10) -> Optional[TopTracks]:
        return await self._answer("get_artist_top_tracks", artist, limit)

    async def get_artist_top_albums(self, artist, limit=10) -> Optional[TopAlbums]:
        return await self._answer("get_artist_top_albums", artist, limit)

    async def get_similar_artists(self, artist, limit=10) -> Optional[SimilarArtists]:
        return await self._answer("get_similar_artists", artist, limit)

    async def get_recent_tracks(self, username, from_, to, limit=200, page=1) -> Optional[RecentTracks]:
        return await self._answer("get_recent_tracks", username, from_, to, limit, page)

    async def get_artist_info(self, artist, username) -> Optional[ArtistInfo]:
        return await self._answer("get_artist_info", artist, username)

    async def get_track_info(self, artist, track, username) -> Optional[TrackInfo]:
        return await self._answer("get_track_info", artist, track, username)


@pytest.fixture
def fake_client() -> FakeLastFmClient:
    return FakeLastFmClient()


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager for the duration of a test."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
