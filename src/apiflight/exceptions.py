"""Exception hierarchy for apiflight.

All exceptions inherit from :class:`ApiflightError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apiflight.exit_codes`.
Library callers catch the specific subclasses; the CLI entry point in
:func:`apiflight.app.main` catches ``ApiflightError`` and exits with the
matching code.

Subclass hierarchy::

    ApiflightError (exit 1)
    +-- MalformedRequestError  (exit 2)
    +-- EncodingError          (exit 2)
    +-- InterceptorError       (exit 3)
    +-- ServerError            (exit 3 for 401, 4 for 404, else 5)
    +-- TransportError         (exit 6)
    +-- DecodeError            (exit 7)
    +-- FileError              (exit 8)
    +-- CacheError             (exit 8)
    +-- ConfigError            (exit 1)
"""

from __future__ import annotations

from apiflight.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_DECODE_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_IO_ERROR,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class ApiflightError(Exception):
    """Base exception for all apiflight errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class MalformedRequestError(ApiflightError):
    """Raised when an endpoint cannot be turned into a valid request URL."""

    exit_code = EXIT_INVALID_USAGE


class EncodingError(ApiflightError):
    """Raised when a request body cannot be serialised."""

    exit_code = EXIT_INVALID_USAGE


class InterceptorError(ApiflightError):
    """Raised when a request interceptor fails; the request is never sent."""

    exit_code = EXIT_AUTH_FAILURE


class ServerError(ApiflightError):
    """Raised for any non-2xx HTTP status.

    Args:
        status_code: The HTTP status returned by the server.
        message: Optional detail extracted from the response body.
    """

    exit_code = EXIT_SERVER_ERROR

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        prefix = f"HTTP {status_code}"
        super().__init__(f"{prefix}: {message}" if message else prefix)
        if status_code == 401:
            self.exit_code = EXIT_AUTH_FAILURE
        elif status_code == 404:
            self.exit_code = EXIT_NOT_FOUND

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401


class TransportError(ApiflightError):
    """Raised on network-level failures (timeout, DNS resolution, TLS, refused connection)."""

    exit_code = EXIT_CONNECTION_ERROR


class DecodeError(ApiflightError):
    """Raised when a response body does not match the expected shape."""

    exit_code = EXIT_DECODE_ERROR


class FileError(ApiflightError):
    """Raised when a temp file or on-disk part cannot be created, read, or written."""

    exit_code = EXIT_IO_ERROR


class CacheError(ApiflightError):
    """Raised when the cache storage fails to read or write an entry."""

    exit_code = EXIT_IO_ERROR


class ConfigError(ApiflightError):
    """Raised for configuration problems (invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE
