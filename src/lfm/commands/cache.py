"""Cache commands -- inspect and maintain the response cache.

Provides the ``lfm cache`` sub-command group:

* ``status`` -- entry counts, size and age range of the cache directory.
* ``clear`` -- delete every entry, or only expired ones with ``--expired``.
* ``cleanup`` -- run budget eviction now instead of waiting for the
  scheduler.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import typer

from lfm.cache.store import CacheStore
from lfm.output import error, format_response, info, success

cache_app = typer.Typer(no_args_is_help=True)


def _open_store() -> CacheStore:
    from lfm.config import get_cache_dir, resolve_config

    config = resolve_config()
    return CacheStore(get_cache_dir(create=False), config.cache)


def _mib(size: int) -> str:
    return f"{size / (1024 * 1024):.2f} MiB"


@cache_app.command("status")
def cache_status() -> None:
    """Show cache statistics.

    Example::

        lfm cache status
        lfm --json cache status
    """
    store = _open_store()
    stats = asyncio.run(store.get_statistics())
    data = stats.model_dump(mode="json")
    data["total_size"] = _mib(stats.total_size_bytes)
    data["corrupt_count"] = stats.file_count - stats.entry_count
    format_response(data)


@cache_app.command("clear")
def cache_clear(
    ctx: typer.Context,
    expired: bool = typer.Option(
        False, "--expired", help="Only remove expired and unreadable entries."
    ),
) -> None:
    """Delete cached responses.

    Removing everything asks for confirmation unless ``--force`` is active.
    """
    store = _open_store()
    if expired:
        removed = asyncio.run(store.cleanup_expired())
        success(f"Removed {removed} expired entries.")
        return

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        if not typer.confirm(f"Delete all cached responses in {store.directory}?"):
            info("Cancelled.")
            raise typer.Exit()

    if asyncio.run(store.clear_all()):
        success("Cache cleared.")
    else:
        error("Some cache files could not be removed.")
        raise typer.Exit(code=1)


@cache_app.command("cleanup")
def cache_cleanup() -> None:
    """Evict expired, over-age and excess entries until the cache fits its budgets."""
    from lfm.config import record_cache_cleanup

    store = _open_store()
    removed = asyncio.run(store.cleanup())
    record_cache_cleanup(datetime.now(timezone.utc))
    success(f"Removed {removed} entries.")
