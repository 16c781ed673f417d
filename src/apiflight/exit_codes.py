"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~apiflight.exceptions.ApiflightError` subclass.
Shell wrappers can inspect the exit code to tell failure classes apart
without parsing stderr.

Example::

    $ apiflight request https://api.example.com/me
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- the server answered 401
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or a malformed request."""

EXIT_AUTH_FAILURE = 3
"""Authentication failed (HTTP 401 or an interceptor could not resolve credentials)."""

EXIT_NOT_FOUND = 4
"""The requested resource was not found (HTTP 404)."""

EXIT_SERVER_ERROR = 5
"""The remote API returned a non-2xx status."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_DECODE_ERROR = 7
"""The response body did not match the expected shape."""

EXIT_IO_ERROR = 8
"""A local file or cache operation failed."""
