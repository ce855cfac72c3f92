"""Statistics commands -- the Last.fm queries exposed by the CLI.

``artists``, ``tracks`` and ``albums`` show a user's top lists, either for one
of Last.fm's fixed periods (``--period``) or for an arbitrary date range
(``--from``/``--to`` or ``--year``), which is aggregated from the scrobble
history. ``similar``, ``artist-top-tracks`` and ``artist-top-albums`` look up
an artist across all listeners. ``artist-tracks`` and ``artist-albums`` search
the user's own listening history for one artist (see :mod:`lfm.search`), and
``check`` reports whether the user has played an artist or track at all.
``recent`` lists scrobbles.

Every command goes through the cache-aware client, so the global
``--cache-mode`` and ``--timing`` options apply to all of them.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

import typer

from lfm import aggregation
from lfm.client.cached_client import CachedClient
from lfm.config import resolve_config
from lfm.dates import resolve_range, validate_period
from lfm.exceptions import InvalidUsageError
from lfm.exit_codes import EXIT_API_ERROR
from lfm.models import LfmConfig, RankAttributes
from lfm.output import debug, error, format_response, info, print_table, suggest, timing, warning
from lfm.runtime import run_with_client
from lfm.search import (
    DEFAULT_BATCH_INTERVAL_MS,
    SearchLimits,
    SearchResult,
    search_artist_albums,
    search_artist_tracks,
)

UserOption = typer.Option(None, "--user", "-u", help="Last.fm username (default: config).")
PeriodOption = typer.Option(
    None, "--period", "-p", help="overall, 7day, 1month, 3month, 6month or 12month."
)
LimitOption = typer.Option(None, "--limit", "-l", min=1, help="Number of items.")
PageOption = typer.Option(1, "--page", min=1, help="Result page.")
FromOption = typer.Option(None, "--from", help="Range start, YYYY-MM-DD (UTC).")
ToOption = typer.Option(None, "--to", help="Range end, YYYY-MM-DD, inclusive.")
YearOption = typer.Option(None, "--year", help="Whole calendar year.")
DeepOption = typer.Option(False, "--deep", help="Search the whole listening history.")
DepthOption = typer.Option(
    None, "--depth", min=0, help="Items of history to search (0: no limit)."
)
DelayOption = typer.Option(
    None, "--delay", "-d", min=0, help="Milliseconds between request batches (default 1000)."
)
TimeoutOption = typer.Option(
    None, "--timeout", "-t", min=0, help="Give up after this many seconds (0: never)."
)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _username(config: LfmConfig) -> str:
    if not config.default_username:
        raise InvalidUsageError(
            "No username given. Pass --user or run 'lfm config set default_username <name>'."
        )
    return config.default_username


def _rank(attributes: Optional[RankAttributes], position: int) -> str:
    if attributes is not None and attributes.rank:
        return attributes.rank
    return str(position)


def _run(
    ctx: typer.Context,
    config: LfmConfig,
    action: Callable[[CachedClient], Awaitable[Any]],
    what: str,
) -> Any:
    """Run *action* against a fresh client and exit non-zero if it produced nothing."""
    result, client = run_with_client(config, ctx.obj or {}, action)
    if client.enable_timing:
        timing(client.timing_results)
    if result is None:
        error(f"Could not retrieve {what} from Last.fm or the cache.")
        raise typer.Exit(code=EXIT_API_ERROR)
    return result


def _top_list(
    ctx: typer.Context,
    user: Optional[str],
    period: Optional[str],
    limit: Optional[int],
    page: int,
    from_: Optional[str],
    to: Optional[str],
    year: Optional[int],
    noun: str,
    fixed: Callable[[CachedClient, str, str, int, int], Awaitable[Any]],
    ranged: Callable[..., Awaitable[Any]],
) -> tuple[Any, str]:
    config = resolve_config(cli_user=user)
    username = _username(config)
    count = limit or config.default_limit
    date_range = resolve_range(from_, to, year)

    if date_range is not None:
        start, end = date_range
        title = f"Top {noun} for {username}, {aggregation.format_date_range(start, end)}"

        def action(client: CachedClient) -> Awaitable[Any]:
            return ranged(client, username, start, end, count)

    else:
        chosen = validate_period(period or config.default_period)
        title = f"Top {noun} for {username} ({chosen})"

        def action(client: CachedClient) -> Awaitable[Any]:
            return fixed(client, username, chosen, count, page)

    return _run(ctx, config, action, f"top {noun}"), title


# ------------------------------------------------------------------ #
# User top lists
# ------------------------------------------------------------------ #


def artists_command(
    ctx: typer.Context,
    user: Optional[str] = UserOption,
    period: Optional[str] = PeriodOption,
    limit: Optional[int] = LimitOption,
    page: int = PageOption,
    from_: Optional[str] = FromOption,
    to: Optional[str] = ToOption,
    year: Optional[int] = YearOption,
) -> None:
    """Show a user's most played artists."""
    result, title = _top_list(
        ctx, user, period, limit, page, from_, to, year, "artists",
        lambda c, u, p, n, pg: c.get_top_artists(u, p, n, pg),
        aggregation.top_artists_for_range,
    )
    if not result.artists:
        info("No artists found.")
        return
    rows = [
        [_rank(a.attributes, i), a.name, a.playcount]
        for i, a in enumerate(result.artists, start=1)
    ]
    print_table(["Rank", "Artist", "Plays"], rows, title)


def tracks_command(
    ctx: typer.Context,
    user: Optional[str] = UserOption,
    period: Optional[str] = PeriodOption,
    limit: Optional[int] = LimitOption,
    page: int = PageOption,
    from_: Optional[str] = FromOption,
    to: Optional[str] = ToOption,
    year: Optional[int] = YearOption,
) -> None:
    """Show a user's most played tracks."""
    result, title = _top_list(
        ctx, user, period, limit, page, from_, to, year, "tracks",
        lambda c, u, p, n, pg: c.get_top_tracks(u, p, n, pg),
        aggregation.top_tracks_for_range,
    )
    if not result.tracks:
        info("No tracks found.")
        return
    rows = [
        [_rank(t.attributes, i), t.name, t.artist.name, t.playcount]
        for i, t in enumerate(result.tracks, start=1)
    ]
    print_table(["Rank", "Track", "Artist", "Plays"], rows, title)


def albums_command(
    ctx: typer.Context,
    user: Optional[str] = UserOption,
    period: Optional[str] = PeriodOption,
    limit: Optional[int] = LimitOption,
    page: int = PageOption,
    from_: Optional[str] = FromOption,
    to: Optional[str] = ToOption,
    year: Optional[int] = YearOption,
) -> None:
    """Show a user's most played albums."""
    result, title = _top_list(
        ctx, user, period, limit, page, from_, to, year, "albums",
        lambda c, u, p, n, pg: c.get_top_albums(u, p, n, pg),
        aggregation.top_albums_for_range,
    )
    if not result.albums:
        info("No albums found.")
        return
    rows = [
        [_rank(a.attributes, i), a.name, a.artist.name, a.playcount]
        for i, a in enumerate(result.albums, start=1)
    ]
    print_table(["Rank", "Album", "Artist", "Plays"], rows, title)


# ------------------------------------------------------------------ #
# Artist lookups
# ------------------------------------------------------------------ #


def similar_command(
    ctx: typer.Context,
    artist: str = typer.Argument(help="Artist name."),
    limit: Optional[int] = LimitOption,
) -> None:
    """Show artists similar to ARTIST."""
    config = resolve_config()
    count = limit or config.default_limit
    result = _run(
        ctx, config, lambda c: c.get_similar_artists(artist, count), "similar artists"
    )
    if not result.artists:
        info(f"No similar artists found for {artist}.")
        return
    rows = [[a.name, a.match] for a in result.artists]
    print_table(["Artist", "Match"], rows, f"Artists similar to {artist}")


def artist_top_tracks_command(
    ctx: typer.Context,
    artist: str = typer.Argument(help="Artist name."),
    limit: Optional[int] = LimitOption,
) -> None:
    """Show ARTIST's most popular tracks across all listeners."""
    config = resolve_config()
    count = limit or config.default_limit
    result = _run(
        ctx, config, lambda c: c.get_artist_top_tracks(artist, count), "artist tracks"
    )
    if not result.tracks:
        info(f"No tracks found for {artist}.")
        return
    rows = [
        [_rank(t.attributes, i), t.name, t.playcount]
        for i, t in enumerate(result.tracks, start=1)
    ]
    print_table(["Rank", "Track", "Plays"], rows, f"Top tracks by {artist}")


def artist_top_albums_command(
    ctx: typer.Context,
    artist: str = typer.Argument(help="Artist name."),
    limit: Optional[int] = LimitOption,
) -> None:
    """Show ARTIST's most popular albums across all listeners."""
    config = resolve_config()
    count = limit or config.default_limit
    result = _run(
        ctx, config, lambda c: c.get_artist_top_albums(artist, count), "artist albums"
    )
    if not result.albums:
        info(f"No albums found for {artist}.")
        return
    rows = [
        [_rank(a.attributes, i), a.name, a.playcount]
        for i, a in enumerate(result.albums, start=1)
    ]
    print_table(["Rank", "Album", "Plays"], rows, f"Top albums by {artist}")


# ------------------------------------------------------------------ #
# Listening history
# ------------------------------------------------------------------ #


def _search_limits(
    config: LfmConfig,
    deep: bool,
    depth: Optional[int],
    delay: Optional[int],
    timeout: Optional[int],
) -> SearchLimits:
    """``--depth`` beats ``--deep``, which beats ``normal_search_depth``; 0 means no limit."""
    if depth is not None:
        max_items = depth or None
    elif deep:
        max_items = None
    else:
        max_items = config.normal_search_depth
    seconds = config.deep_search_timeout_seconds if timeout is None else timeout
    return SearchLimits(
        depth=max_items,
        timeout=float(seconds) if seconds else None,
        batch_size=config.parallel_api_calls,
        batch_interval_ms=DEFAULT_BATCH_INTERVAL_MS if delay is None else delay,
    )


def _history_search(
    ctx: typer.Context,
    user: Optional[str],
    artist: str,
    limit: Optional[int],
    limits_from: Callable[[LfmConfig], SearchLimits],
    noun: str,
    search: Callable[..., Awaitable[SearchResult[Any]]],
) -> Optional[list[Any]]:
    """Run a history search and report on it; ``None`` when nothing matched."""
    if not artist.strip():
        raise InvalidUsageError("Artist name cannot be empty.")
    config = resolve_config(cli_user=user)
    username = _username(config)
    count = limit or config.default_limit
    limits = limits_from(config)
    scope = "all" if limits.depth is None else f"up to {limits.depth:,}"
    debug(f"Searching {scope} of {username}'s {noun} for {artist}")

    result = _run(
        ctx, config, lambda c: search(c, username, artist, count, limits), f"your {noun}"
    )
    if result.searched == 0 and result.failed_pages:
        error(f"Could not retrieve your {noun} from Last.fm or the cache.")
        raise typer.Exit(code=EXIT_API_ERROR)
    if result.timed_out:
        warning(
            f"Search timed out after {limits.timeout:g} s; searched {result.searched:,} "
            f"{noun} and found {len(result.matches)} matches."
        )
    else:
        debug(f"Searched {result.searched:,} {noun}, found {len(result.matches)} matches")
    if not result.matches:
        info(f"No {noun} by {artist} found in {username}'s listening history.")
        if limits.depth is not None:
            suggest("Use --deep to search the whole library.")
        return None
    return result.top(count)


def artist_tracks_command(
    ctx: typer.Context,
    artist: str = typer.Argument(help="Artist name."),
    user: Optional[str] = UserOption,
    limit: Optional[int] = LimitOption,
    deep: bool = DeepOption,
    depth: Optional[int] = DepthOption,
    delay: Optional[int] = DelayOption,
    timeout: Optional[int] = TimeoutOption,
) -> None:
    """Show your most played tracks by ARTIST, from your listening history."""
    tracks = _history_search(
        ctx, user, artist, limit,
        lambda config: _search_limits(config, deep, depth, delay, timeout),
        "tracks",
        search_artist_tracks,
    )
    if tracks is None:
        return
    rows = [[_rank(t.attributes, i), t.name, t.playcount] for i, t in enumerate(tracks, start=1)]
    print_table(["Rank", "Track", "Plays"], rows, f"Your top tracks by {artist}")


def artist_albums_command(
    ctx: typer.Context,
    artist: str = typer.Argument(help="Artist name."),
    user: Optional[str] = UserOption,
    limit: Optional[int] = LimitOption,
    deep: bool = DeepOption,
    depth: Optional[int] = DepthOption,
    delay: Optional[int] = DelayOption,
    timeout: Optional[int] = TimeoutOption,
) -> None:
    """Show your most played albums by ARTIST, from your listening history."""
    albums = _history_search(
        ctx, user, artist, limit,
        lambda config: _search_limits(config, deep, depth, delay, timeout),
        "albums",
        search_artist_albums,
    )
    if albums is None:
        return
    rows = [[_rank(a.attributes, i), a.name, a.playcount] for i, a in enumerate(albums, start=1)]
    print_table(["Rank", "Album", "Plays"], rows, f"Your top albums by {artist}")


def check_command(
    ctx: typer.Context,
    artist: str = typer.Argument(help="Artist name."),
    track: Optional[str] = typer.Argument(
        None, help="Track title. Omit to check the artist."
    ),
    user: Optional[str] = UserOption,
) -> None:
    """Check whether you have listened to ARTIST, or to one of its tracks."""
    config = resolve_config(cli_user=user)
    username = _username(config)

    if track:
        found = _run(
            ctx, config, lambda c: c.get_track_info(artist, track, username), "track info"
        )
        data: dict[str, Any] = {
            "artist": found.artist.name or artist,
            "track": found.name or track,
            "user_playcount": found.user_playcount,
            "loved": found.loved,
            "global_playcount": found.global_playcount,
        }
        if found.album is not None and found.album.title:
            data["album"] = found.album.title
        tags = found.toptags
    else:
        found = _run(
            ctx, config, lambda c: c.get_artist_info(artist, username), "artist info"
        )
        data = {
            "artist": found.name or artist,
            "user_playcount": found.user_playcount,
            "global_playcount": found.global_playcount,
        }
        tags = found.tags
    if tags is not None and tags.tags:
        data["tags"] = [t.name for t in tags.tags[:5]]

    if found.user_playcount == 0:
        info(f"{username} has never played this.")
    format_response(data)


# ------------------------------------------------------------------ #
# Scrobbles
# ------------------------------------------------------------------ #


def recent_command(
    ctx: typer.Context,
    user: Optional[str] = UserOption,
    limit: Optional[int] = LimitOption,
    page: int = PageOption,
    from_: Optional[str] = FromOption,
    to: Optional[str] = ToOption,
    year: Optional[int] = YearOption,
) -> None:
    """List scrobbles, by default those of the last seven days."""
    config = resolve_config(cli_user=user)
    username = _username(config)
    count = limit or config.default_limit
    date_range = resolve_range(from_, to, year)
    if date_range is None:
        # truncated so repeated runs within the same minute share a cache entry
        end = datetime.now(timezone.utc).replace(second=0, microsecond=0)
        date_range = (end - timedelta(days=7), end)
    start, end = date_range

    result = _run(
        ctx,
        config,
        lambda c: c.get_recent_tracks(username, start, end, count, page),
        "recent tracks",
    )
    rows = [
        [t.date.text if t.date else "now playing", t.name, t.artist.text, t.album.text]
        for t in result.tracks
    ]
    if not rows:
        info("No scrobbles in this range.")
        return
    print_table(
        ["Date", "Track", "Artist", "Album"],
        rows,
        f"Scrobbles for {username}, {aggregation.format_date_range(start, end)}",
    )
