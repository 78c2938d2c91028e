"""
Data models for the source availability system.

This module defines the request, snapshot, verdict and decision structures
that flow between the fetcher, classifier, checker and checkout gate, plus
the listing record owned by the persistence collaborator.
"""

from dataclasses import dataclass, field
from typing import Optional

from .config import ClassificationSignal
from .enums import (
    AvailabilityVerdict,
    CheckoutDecision,
    ListingAvailabilityState,
)


@dataclass(frozen=True)
class CheckRequest:
    """A single availability check, created per checkout attempt."""

    url: str
    timeout_seconds: float
    platform_hint: Optional[str] = None


@dataclass(frozen=True)
class PageSnapshot:
    """Everything the classifier needs from one page load."""

    url: str  # requested URL
    html: str  # serialized DOM
    text: str  # rendered visible text
    final_url: Optional[str] = None  # after redirects
    http_status: Optional[int] = None
    elapsed_ms: float = 0.0


@dataclass(frozen=True)
class ClassificationResult:
    """Verdict of the classifier with the signals that produced it."""

    verdict: AvailabilityVerdict
    platform: str
    matched_signal: Optional[ClassificationSignal] = None
    available_signals: tuple[ClassificationSignal, ...] = ()


@dataclass
class CheckMetadata:
    """Metadata about a check operation."""

    total_duration_ms: float
    fetch_duration_ms: float = 0.0
    http_status: Optional[int] = None


@dataclass
class CheckResult:
    """Complete result of an availability check."""

    url: str
    verdict: AvailabilityVerdict
    platform: Optional[str]
    timestamp: str
    metadata: CheckMetadata
    matched_signal: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class Listing:
    """A marketplace listing as seen by the checkout gate."""

    id: str
    source_url: Optional[str] = None  # None for non-mirrored listings
    availability_state: ListingAvailabilityState = ListingAvailabilityState.ACTIVE
    title: str = ""
    platform: Optional[str] = None

    @property
    def is_mirrored(self) -> bool:
        """True when the listing's inventory lives on a source platform."""
        return bool(self.source_url and self.source_url.strip())


@dataclass
class GateResult:
    """Outcome of a checkout authorization."""

    listing_id: str
    decision: CheckoutDecision
    verdict: Optional[AvailabilityVerdict] = None  # None when no check ran
    message: Optional[str] = None
    state_changed: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def warning(self) -> bool:
        """Soft warning flag for callers on unverified checkouts."""
        return self.decision == CheckoutDecision.PROCEED_UNVERIFIED

    @property
    def http_status(self) -> int:
        """HTTP status for collaborators exposing the gate over HTTP."""
        if self.decision == CheckoutDecision.BLOCKED:
            return 409
        return 200

    def to_response_body(self) -> dict:
        """Response body matching http_status."""
        body: dict = {
            "listing_id": self.listing_id,
            "decision": self.decision.value,
        }
        if self.decision == CheckoutDecision.BLOCKED:
            body["error"] = self.message
        if self.warning:
            body["warning"] = True
        return body
