"""Refresh and reconciliation error types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class RefreshError(Exception):
    """Refresh failure with a stable error code."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class UnsupportedProviderError(RefreshError):
    """The provider has no list-models endpoint."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            "unsupported_provider", f"Fetching the model list is not supported for {provider}"
        )
        self.provider = provider


class ConcurrentRefreshError(RefreshError):
    """A refresh is already in flight."""

    def __init__(self) -> None:
        super().__init__("concurrent_refresh", "A model list refresh is already in progress")


class TransportFailureError(RefreshError):
    """Network error, timeout, non-2xx status or malformed body."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__("transport_failure", message)
        self.status_code = status_code


class StoreFailureError(RefreshError):
    """The fetched list could not be written to the catalog or configuration store."""

    def __init__(self, message: str) -> None:
        super().__init__("store_failure", message)


class EmptyResultError(RefreshError):
    """The provider returned no models."""

    def __init__(self) -> None:
        super().__init__("empty_result", "No available models returned")


@dataclass(frozen=True)
class ReconciliationGap:
    """No available model exists for a non-default provider; the selection is left as is."""

    slot: str
    provider: str
    model: str


__all__ = [
    "ConcurrentRefreshError",
    "EmptyResultError",
    "ReconciliationGap",
    "RefreshError",
    "StoreFailureError",
    "TransportFailureError",
    "UnsupportedProviderError",
]
