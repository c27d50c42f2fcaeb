"""Error taxonomy shared by the quote store and the sync engine."""

from __future__ import annotations


class QuoteSyncError(Exception):
    """Base class for all quotesync errors."""


class ValidationError(QuoteSyncError, ValueError):
    """Raised when a required record field is empty."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class FormatError(QuoteSyncError, ValueError):
    """Raised when an imported, persisted or fetched payload is malformed."""


class NetworkError(QuoteSyncError):
    """Raised when a remote fetch or publish cannot be completed."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


class ConfigError(QuoteSyncError):
    """Raised when configuration options fail validation."""


__all__ = [
    "ConfigError",
    "FormatError",
    "NetworkError",
    "QuoteSyncError",
    "ValidationError",
]
