"""Typer application and CLI entry point for lfm.

This module wires together the top-level Typer application and registers the
built-in commands (the statistics queries plus the ``cache`` and ``config``
groups).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. :class:`~lfm.exceptions.LfmError` exits with its own
exit code; any other unhandled exception is written to a crash log under the
data directory.

See Also:
    :mod:`lfm.config`: Configuration resolution.
    :mod:`lfm.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import sys
import traceback
from datetime import datetime

import typer

from lfm import __version__
from lfm.commands import stats
from lfm.commands.cache import cache_app
from lfm.commands.config import config_app
from lfm.exceptions import LfmError
from lfm.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from lfm.models import CacheBehavior

app = typer.Typer(
    name="lfm",
    help="Last.fm listening statistics with a transparent response cache.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)

app.command("artists")(stats.artists_command)
app.command("tracks")(stats.tracks_command)
app.command("albums")(stats.albums_command)
app.command("similar")(stats.similar_command)
app.command("artist-top-tracks")(stats.artist_top_tracks_command)
app.command("artist-top-albums")(stats.artist_top_albums_command)
app.command("artist-tracks")(stats.artist_tracks_command)
app.command("artist-albums")(stats.artist_albums_command)
app.command("check")(stats.check_command)
app.command("recent")(stats.recent_command)
app.add_typer(cache_app, name="cache", help="Response cache management.")
app.add_typer(config_app, name="config", help="Configuration management.")

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"lfm {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send library log records to stderr: WARNING by default, DEBUG with ``--verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=_LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # keep --verbose readable
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    cache_mode: CacheBehavior = typer.Option(
        CacheBehavior.NORMAL,
        "--cache-mode",
        "-c",
        case_sensitive=False,
        help="normal, force-cache, force-api or no-cache.",
    ),
    timing: bool = typer.Option(
        False, "--timing", help="Report per-call cache hits and timings on stderr."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~lfm.output.OutputManager` and logging
    from the CLI flags, and stores the shared options (``cache_mode``,
    ``timing``, ``force``, ``verbose``) in ``ctx.obj`` for the sub-commands.
    """
    from lfm.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["cache_mode"] = cache_mode
    ctx.obj["timing"] = timing
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _write_crash_log(exc: Exception) -> str:
    """Save the traceback of an unexpected error and return the log path.

    The log records the lfm version and the command line so that a bug
    report can be filed from it alone.
    """
    from lfm.config import get_data_dir

    log_path = get_data_dir() / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text(
        f"lfm {__version__}\n"
        f"argv: {' '.join(sys.argv)}\n\n"
        f"{type(exc).__name__}: {exc}\n\n"
        f"{traceback.format_exc()}",
        encoding="utf-8",
    )
    return str(log_path)


def main() -> None:
    """Console-script entry point.

    Ctrl-C cancels the running request (``asyncio.run`` turns it into a
    ``KeyboardInterrupt`` after cancelling the main task) and exits with
    :data:`~lfm.exit_codes.EXIT_INTERRUPTED`. An :class:`LfmError` is printed
    and exits with its own code. Anything else leaves a crash log.
    """
    from lfm.output import error

    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except LfmError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        error(f"Unexpected error. Details were written to {_write_crash_log(exc)}")
        sys.exit(EXIT_GENERIC_FAILURE)
