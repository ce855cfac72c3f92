"""Wiring of the client stack for CLI commands.

Every command that talks to Last.fm gets its client from :func:`open_client`,
which layers :class:`~lfm.client.cached_client.CachedClient` over
:class:`~lfm.client.async_client.AsyncClient` and shares one process-wide
:class:`~lfm.throttle.ThrottleGate` between all of them.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from lfm.cache.store import CacheStore
from lfm.client.async_client import AsyncClient
from lfm.client.base import LastFmClient
from lfm.client.cached_client import CachedClient
from lfm.config import get_cache_dir
from lfm.exceptions import ConfigError
from lfm.models import CacheBehavior, LfmConfig
from lfm.throttle import ThrottleGate

T = TypeVar("T")

_gate: Optional[ThrottleGate] = None


def get_gate() -> ThrottleGate:
    """Return the process-wide throttle gate."""
    global _gate
    if _gate is None:
        _gate = ThrottleGate()
    return _gate


def reset_gate() -> None:
    global _gate
    _gate = None


def create_inner_client(config: LfmConfig) -> LastFmClient:
    """Build the raw HTTP client.

    Raises:
        ConfigError: If no API key is configured.
    """
    if not config.api_key:
        raise ConfigError(
            "No Last.fm API key configured. Run 'lfm config set api_key <key>' "
            "or set LFM_API_KEY."
        )
    return AsyncClient(config.api_key, request=config.request)


def open_client(
    config: LfmConfig,
    behavior: CacheBehavior = CacheBehavior.NORMAL,
    enable_timing: bool = False,
) -> CachedClient:
    """Build the cache-aware client for one CLI invocation.

    The cache directory is not created here. If it turns out to be unusable
    the store logs each failed read or write and the call is answered from
    the network. A disabled cache is passed on as ``None``, which also skips
    background cleanup.
    """
    store = CacheStore(get_cache_dir(create=False), config.cache)
    return CachedClient(
        create_inner_client(config),
        store,
        get_gate(),
        config.cache if config.cache.enabled else None,
        throttle_ms=config.api_throttle_ms,
        cache_behavior=behavior,
        enable_timing=enable_timing,
    )


def run_with_client(
    config: LfmConfig,
    ctx_obj: dict[str, Any],
    action: Callable[[CachedClient], Awaitable[T]],
) -> tuple[T, CachedClient]:
    """Open a client from the CLI options in *ctx_obj*, run *action* and close it.

    Returns:
        The action's result and the (closed) client, whose timing records
        remain readable.
    """
    behavior = ctx_obj.get("cache_mode", CacheBehavior.NORMAL)
    client = open_client(config, behavior, ctx_obj.get("timing", False))

    async def _run() -> T:
        async with client:
            return await action(client)

    return asyncio.run(_run()), client
