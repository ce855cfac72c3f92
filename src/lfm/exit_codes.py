"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~lfm.exceptions.LfmError` subclass. Shell wrappers can
inspect the exit code to tell "no data" apart from a broken configuration
without parsing stderr.

Example::

    $ lfm artists            # no --user and no default_username
    $ echo $?
    2   # EXIT_INVALID_USAGE -- no username given or configured
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred (including configuration problems)."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_API_ERROR = 3
"""Last.fm answered with an error payload, or returned no usable data."""

EXIT_NOT_FOUND = 4
"""The requested user, artist or resource does not exist."""

EXIT_SERVER_ERROR = 5
"""The remote API returned an HTTP 5xx server error."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C (128 + SIGINT)."""
