"""
Enumeration types for the source availability system.

These enums provide type-safe constants for verdicts, listing states,
checkout decisions, error codes, and configuration options.
"""

from enum import Enum


class AvailabilityVerdict(Enum):
    """Outcome of a single availability check against the source platform."""

    AVAILABLE = "available"
    SOLD = "sold"
    UNKNOWN = "unknown"


class ListingAvailabilityState(Enum):
    """Availability state attached to a mirrored listing."""

    ACTIVE = "active"
    SOLD_ON_SOURCE = "sold_on_source"


class CheckoutDecision(Enum):
    """Decision returned by the checkout gate."""

    PROCEED = "proceed"
    BLOCKED = "blocked"
    PROCEED_UNVERIFIED = "proceed_unverified"


class SignalKind(Enum):
    """Where a classification signal is matched."""

    TEXT = "text"  # rendered visible text
    MARKUP = "markup"  # serialized DOM
    STRUCTURED = "structured"  # schema.org JSON-LD field


class FetchStrategy(Enum):
    """Page loading strategy used by the fetcher."""

    BROWSER = "browser"
    HTTP = "http"


class LogLevel(Enum):
    """Logging severity levels."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class UrlValidationErrorCode(Enum):
    """Error codes for source URL validation failures."""

    EMPTY_INPUT = "empty_input"
    NOT_ABSOLUTE = "not_absolute"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    INVALID_HOST = "invalid_host"
    IDNA_ERROR = "idna_error"


class TransportErrorCode(Enum):
    """Error codes for fetch failures. All of them map to UNKNOWN."""

    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    HTTP_ERROR = "http_error"
    REDIRECT_LOOP = "redirect_loop"
    RENDER_CRASH = "render_crash"
    CONTENT_TOO_SHORT = "content_too_short"
    BOT_CHALLENGE = "bot_challenge"
    INVALID_URL = "invalid_url"
