"""Canonical Pydantic models for apiflight configuration.

Every configuration section lives here so that :mod:`apiflight.config`,
the HTTP transport and the CLI share one definition of each shape:

    :class:`AuthConfig`, :class:`RequestConfig`, :class:`CacheConfig`,
    :class:`UploadConfig`, and the top-level :class:`Settings`.

:class:`HTTPMethod` is also defined here because it is used both by
endpoints and by the CLI option parser.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HTTPMethod(str, enum.Enum):
    """HTTP methods an :class:`~apiflight.client.endpoint.Endpoint` may use."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


# --- Auth Config ---


class AuthConfig(BaseModel):
    """Authentication section of :class:`Settings`.

    Selects which request interceptor injects credentials into every
    outgoing request. See :func:`~apiflight.auth.build_auth_interceptors`.

    Example::

        AuthConfig(type="api_key", header="X-API-Key", source="env:MY_API_KEY")
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(description="Auth type: bearer, api_key")
    source: str = Field(
        default="prompt",
        description="Credential source: env:VAR, file:/path, prompt",
    )
    header: Optional[str] = Field(
        default=None, description="Header name for api_key auth"
    )
    param_name: Optional[str] = Field(
        default=None, description="Query parameter name for api_key auth"
    )
    location: str = Field(
        default="header", description="Where to send an api key: header or query"
    )


class RequestConfig(BaseModel):
    """HTTP transport settings (timeout, SSL verification, redirects)."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    follow_redirects: bool = Field(default=True)
    timezone: Optional[str] = Field(
        default=None,
        description="Value of the Timezone request header; defaults to the local zone",
    )


class CacheConfig(BaseModel):
    """Response cache settings."""

    enabled: bool = Field(default=True, description="Enable response caching")
    directory: Optional[str] = Field(
        default=None, description="Cache directory; defaults to the XDG cache dir"
    )


class UploadConfig(BaseModel):
    """Multipart upload settings."""

    chunk_size: int = Field(
        default=64 * 1024, gt=0, description="Bytes read per upload chunk"
    )


class Settings(BaseModel):
    """Top-level configuration persisted as ``config.json``.

    Loaded and saved by :func:`~apiflight.config.load_settings` and
    :func:`~apiflight.config.save_settings`.
    """

    base_url: Optional[str] = None
    auth: Optional[AuthConfig] = None
    request: RequestConfig = Field(default_factory=RequestConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
