"""
Exception classes for the source availability system.

All exceptions inherit from SourceAvailabilityError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class SourceAvailabilityError(Exception):
    """Base exception for all source availability errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SourceAvailabilityError):
    """Raised when a source URL or request fails validation."""

    pass


class TransportError(SourceAvailabilityError):
    """
    Raised by fetchers when a page could not be loaded into a usable snapshot.

    Covers timeouts, connection failures, non-2xx responses, redirect loops,
    renderer crashes and malformed or too-short content.
    """

    pass


class ConfigurationError(SourceAvailabilityError):
    """Raised at startup when platform signals or settings are invalid."""

    pass


class PersistenceError(SourceAvailabilityError):
    """Raised when persistence operations fail (file I/O, HMAC validation)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation fails, indicating data tampering."""

    pass


class ListingNotFoundError(SourceAvailabilityError):
    """Raised when a listing id is not present in the listing store."""

    pass
