"""lfm -- a cache-aware command-line client for the Last.fm statistics API.

The package wraps the Last.fm web service behind an async client and
interposes a transparent disk cache between every logical API call and the
network. Real network calls are globally throttled so that no burst of
concurrent operations can exceed the upstream rate limit.

Typical usage::

    lfm artists --user rj --period 7day
    lfm tracks --user rj --year 2017 --cache-mode force-cache
    lfm cache status

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and atomic file writes.
    throttle: Process-wide gate enforcing a minimum interval between calls.
    cache: Key derivation, the file-backed cache store, and cleanup policy.
    client: The raw Last.fm client and its caching decorator.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.4.0"
