"""Body encoder and response decoder strategies.

An :class:`~apiflight.client.endpoint.Endpoint` carries one encoder and one
decoder, chosen by the caller when the endpoint is constructed. The
transport never inspects the requested output type; it simply hands the
response bytes to the decoder.

Decoders:
    :class:`JSONDecoder` -- ``json.loads`` or pydantic validation of a model.
    :class:`EmptyDecoder` -- ignores the body and returns ``None``.
    :class:`TextDecoder` -- returns the body as ``str``.
    :class:`BytesDecoder` -- returns the raw body.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Generic, Optional, Protocol, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from apiflight.exceptions import DecodeError, EncodingError

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Decoder(Protocol[T_co]):
    """Turns a response body into the endpoint's output value."""

    def decode(self, content: bytes) -> T_co: ...


class JSONEncoder:
    """Serialise request bodies and JSON multipart parts to UTF-8 JSON.

    Pydantic models are dumped with ``model_dump(mode="json")``, dataclasses
    with :func:`dataclasses.asdict`; everything else must be accepted by
    :func:`json.dumps`.

    Args:
        by_alias: Use field aliases when dumping pydantic models.
        exclude_none: Drop ``None`` fields from pydantic models.
        sort_keys: Forwarded to :func:`json.dumps`.
    """

    def __init__(
        self,
        by_alias: bool = True,
        exclude_none: bool = False,
        sort_keys: bool = False,
    ) -> None:
        self.by_alias = by_alias
        self.exclude_none = exclude_none
        self.sort_keys = sort_keys

    def encode(self, value: Any) -> bytes:
        """Encode *value* to JSON bytes.

        Raises:
            EncodingError: If the value is not JSON-serialisable.
        """
        try:
            return json.dumps(self._to_jsonable(value), sort_keys=self.sort_keys).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncodingError(f"Cannot encode {type(value).__name__} as JSON: {exc}") from exc

    def _to_jsonable(self, value: Any) -> Any:
        if isinstance(value, BaseModel):
            return value.model_dump(
                mode="json", by_alias=self.by_alias, exclude_none=self.exclude_none
            )
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            return dataclasses.asdict(value)
        return value


class JSONDecoder(Generic[T]):
    """Decode a JSON body, optionally validating it against a type.

    With ``model=None`` the body is returned as plain Python data. Any type
    pydantic understands (a ``BaseModel`` subclass, ``list[Model]``, a
    ``TypedDict``...) can be passed as *model*.

    Example::

        decoder = JSONDecoder(UserPage)
        page = decoder.decode(b'{"items": [], "next_cursor": null}')
    """

    def __init__(self, model: Optional[Any] = None) -> None:
        self.model = model
        self._adapter: Optional[TypeAdapter[Any]] = (
            TypeAdapter(model) if model is not None else None
        )

    def decode(self, content: bytes) -> T:
        try:
            if self._adapter is not None:
                return self._adapter.validate_json(content)
            return json.loads(content)
        except ValidationError as exc:
            raise DecodeError(f"Response does not match {self._model_name()}: {exc}") from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise DecodeError(f"Response is not valid JSON: {exc}") from exc

    def _model_name(self) -> str:
        return getattr(self.model, "__name__", repr(self.model))


class EmptyDecoder:
    """For endpoints whose response carries no meaningful body."""

    def decode(self, content: bytes) -> None:
        return None


class TextDecoder:
    """Decode the body as text (markdown, plain text, HTML...)."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def decode(self, content: bytes) -> str:
        try:
            return content.decode(self.encoding)
        except UnicodeDecodeError as exc:
            raise DecodeError(f"Response is not valid {self.encoding} text: {exc}") from exc


class BytesDecoder:
    def decode(self, content: bytes) -> bytes:
        return content
