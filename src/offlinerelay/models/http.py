"""Request and response values handled by the fetch strategy and cache."""

from __future__ import annotations

from enum import StrEnum
from typing import Any
from urllib.parse import urldefrag, urlsplit

from pydantic import Field, field_validator

from offlinerelay._constants import (
    NETWORK_SCHEMES,
    OFFLINE_BODY,
    OFFLINE_CONTENT_TYPE,
    OFFLINE_REASON,
    OFFLINE_STATUS,
)
from offlinerelay.models._base import RelayBaseModel


class RequestMode(StrEnum):
    NAVIGATE = "navigate"
    SAME_ORIGIN = "same-origin"
    NO_CORS = "no-cors"
    CORS = "cors"


class FetchRequest(RelayBaseModel):
    """An intercepted request.

    ``url`` is always absolute; the cache keys entries on
    :attr:`cache_key`, i.e. method plus URL without fragment.
    """

    url: str
    method: str = "GET"
    mode: RequestMode = RequestMode.NO_CORS
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def scheme(self) -> str:
        return urlsplit(self.url).scheme.lower()

    @property
    def is_network(self) -> bool:
        return self.scheme in NETWORK_SCHEMES

    @property
    def is_navigation(self) -> bool:
        return self.mode == RequestMode.NAVIGATE

    @property
    def cache_key(self) -> tuple[str, str]:
        return self.method, urldefrag(self.url).url


class CachedResponse(RelayBaseModel):
    """A complete response body with its status line and headers."""

    status: int
    reason: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: str | None = None) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")

    def clone(self, **update: Any) -> CachedResponse:
        """Independent copy, optionally with fields replaced."""
        return self.model_copy(update=update, deep=True)

    @classmethod
    def offline(cls, url: str = "") -> CachedResponse:
        """Placeholder returned when neither cache nor network can answer."""
        return cls(
            status=OFFLINE_STATUS,
            reason=OFFLINE_REASON,
            headers={"Content-Type": OFFLINE_CONTENT_TYPE},
            body=OFFLINE_BODY.encode("utf-8"),
            url=url,
        )
