"""HTTP client layer for apiflight.

Provides the request model, codecs and the asynchronous transport that
executes requests over :mod:`httpx`.

Classes:
    :class:`Endpoint` -- immutable request description with a canonical key.
    :class:`Transport` -- sends endpoints and maps responses to values.
    :class:`MultipartContent` -- one part of a multipart upload.
    :class:`LoadState` -- a call outcome captured as a value.

Example::

    from apiflight.client import Endpoint, Transport

    async with Transport() as transport:
        me = await transport.call(Endpoint("https://api.example.com/me"))
"""

from apiflight.client.codecs import BytesDecoder, EmptyDecoder, JSONDecoder, JSONEncoder, TextDecoder
from apiflight.client.endpoint import Endpoint
from apiflight.client.multipart import MultipartContent, ProgressStream
from apiflight.client.response import LoadState
from apiflight.client.signals import Signal
from apiflight.client.transport import Transport

__all__ = [
    "BytesDecoder",
    "EmptyDecoder",
    "Endpoint",
    "JSONDecoder",
    "JSONEncoder",
    "LoadState",
    "MultipartContent",
    "ProgressStream",
    "Signal",
    "TextDecoder",
    "Transport",
]
