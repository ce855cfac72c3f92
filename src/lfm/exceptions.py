"""Exception hierarchy for lfm.

All exceptions inherit from :class:`LfmError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`lfm.exit_codes`.
The top-level error handler in :func:`lfm.app.main` catches ``LfmError``
and exits with the appropriate code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The raw HTTP client raises these freely. The caching decorator in
:mod:`lfm.client.cached_client` catches every one of them and downgrades it
to a fallback call or a ``None`` result, so callers of the cached client
never see them.

Subclass hierarchy::

    LfmError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 1)
    +-- ApiError            (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
"""

from __future__ import annotations

from lfm.exit_codes import (
    EXIT_API_ERROR,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class LfmError(Exception):
    """Base exception for all lfm errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(LfmError):
    """Raised for invalid CLI arguments such as malformed dates or a missing username."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(LfmError):
    """Raised for configuration problems (missing API key, invalid JSON)."""

    exit_code = EXIT_GENERIC_FAILURE


class ApiError(LfmError):
    """Raised when Last.fm answers with an ``{"error": N, "message": ...}`` payload.

    Args:
        message: The message returned by Last.fm.
        error_code: The numeric Last.fm error code (e.g. ``29`` for rate
            limit exceeded).
    """

    exit_code = EXIT_API_ERROR

    def __init__(self, message: str, error_code: int | None = None):
        super().__init__(message)
        self.error_code = error_code


class NotFoundError(LfmError):
    """Raised when the user or artist does not exist (HTTP 404 or Last.fm error 6)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(LfmError):
    """Raised for HTTP 5xx answers and for bodies that are not a JSON object."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(LfmError):
    """Raised when Last.fm could not be reached after all retries.

    The trailing underscore keeps the built-in ``ConnectionError`` usable.
    """

    exit_code = EXIT_CONNECTION_ERROR
