"""
Provider exceptions.

Raised at the HTTP and normalization boundary, caught per provider by the
aggregator. None of them escape the public aggregator operations.
"""

from typing import Optional


class ProviderError(Exception):
    """Base exception for all provider errors."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status = status

    def __str__(self) -> str:
        parts = [self.message]
        if self.provider:
            parts.append(f"[provider={self.provider}]")
        if self.status is not None:
            parts.append(f"[status={self.status}]")
        return " ".join(parts)


class ProviderFetchError(ProviderError):
    """Network failure or non-2xx response."""


class ProviderParseError(ProviderError):
    """Malformed body or missing expected fields."""


class ProviderDisabledError(ProviderError):
    """The provider is marked inactive."""
