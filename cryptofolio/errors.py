"""Exception hierarchy for cryptofolio.

Validation and constraint errors are meant for the immediate caller so the
user can correct their input. External-service errors are isolated per item
during batch price refreshes. Everything else propagates to the shell loop.
"""

from typing import Optional


class CryptofolioError(Exception):
    """Base class for all cryptofolio errors."""


class ValidationError(CryptofolioError, ValueError):
    """Malformed input to a store write or an adapter call."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class UniqueConstraintError(CryptofolioError):
    """A row with the same natural key already exists."""


class NotFoundError(CryptofolioError, LookupError):
    """A lookup by key returned nothing."""


class ExternalServiceError(CryptofolioError):
    """An external provider call failed.

    Attributes:
        provider: Short provider name (e.g. "coinmarketcap").
        provider_message: Error message reported by the provider, if any.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        provider_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.provider = provider
        self.provider_message = provider_message
        self.status_code = status_code
        detail = f"{provider} error: {message}"
        if provider_message and provider_message not in message:
            detail += f" ({provider_message})"
        super().__init__(detail)


class StorageError(CryptofolioError):
    """The persistent store failed."""


class InitializationError(CryptofolioError):
    """An operation ran before the store schema was created."""


class ConfigurationError(CryptofolioError):
    """A required setting is missing or invalid."""
