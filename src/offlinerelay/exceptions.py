"""Custom exception hierarchy for offlinerelay."""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all offlinerelay errors."""


class RelayConfigError(RelayError):
    """Invalid or missing configuration."""


class RelayNetworkError(RelayError):
    """Transport-level failure while fetching from the origin.

    Covers connectivity loss, DNS failures and timeouts.  A response with
    any HTTP status, including 5xx, is *not* a network error.
    """

    def __init__(self, message: str, *, url: str = "") -> None:
        self.url = url
        super().__init__(message)


class RelayCacheError(RelayError):
    """Cache population failed (asset fetch failed or returned non-200)."""

    def __init__(
        self,
        message: str,
        *,
        url: str = "",
        status_code: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class RelayConnectionError(RelayError):
    """The upstream duplex connection could not be opened."""
