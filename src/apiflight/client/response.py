"""Response helpers shared by the transport and the CLI.

- :class:`LoadState` -- a call outcome captured as a value, for callers
  that prefer branching on state over ``try``/``except``.
- :func:`error_message` -- best-effort detail text for a failed response.
- :func:`format_api_response` -- prints a decoded value through
  :mod:`apiflight.output`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

import httpx

from apiflight.output import get_output

T = TypeVar("T")


@dataclass(frozen=True)
class LoadState(Generic[T]):
    """Outcome of :meth:`~apiflight.client.transport.Transport.call_load_state`."""

    value: Optional[T] = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: T) -> LoadState[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> LoadState[T]:
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None


def error_message(response: httpx.Response) -> str:
    """Extract an error message from a failed response body.

    Looks for ``message``, ``error`` or ``detail`` in a JSON object and
    falls back to the first 200 characters of the text.
    """
    try:
        detail = response.json()
        if isinstance(detail, dict):
            return str(detail.get("message") or detail.get("error") or detail.get("detail") or "")
        return str(detail)
    except (ValueError, UnicodeDecodeError):
        return response.text[:200] if response.text else ""


def format_api_response(data: Any) -> None:
    """Print a decoded response value to stdout using the global output manager.

    ``None`` (an empty response) prints nothing; ``bytes`` are shown as a
    size summary on stderr rather than dumped to the terminal.
    """
    output = get_output()
    if data is None:
        return
    if isinstance(data, bytes):
        output.info(f"{len(data)} bytes received")
        return
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    output.format_response(data)
