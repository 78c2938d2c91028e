"""
Checkout Gate for mirrored listings.

The gate runs one availability check per checkout attempt and maps the
verdict to a decision:
- no source URL: PROCEED, no check
- SOLD: mark the listing SOLD_ON_SOURCE and BLOCK
- AVAILABLE: PROCEED
- UNKNOWN: PROCEED_UNVERIFIED (fail open, listing unchanged)

Checkout is never blocked on uncertainty, only on a definitive SOLD.
"""

import asyncio
from typing import Optional

from .audit_logger import AuditLogger
from .checker import AvailabilityChecker
from .enums import (
    AvailabilityVerdict,
    CheckoutDecision,
    ListingAvailabilityState,
    LogLevel,
)
from .exceptions import ListingNotFoundError, PersistenceError
from .i18n import get_message
from .listing_store import ListingRepository
from .models import GateResult, Listing


class CheckoutGate:
    """Authorizes checkout of a listing against the live source page."""

    def __init__(
        self,
        checker: AvailabilityChecker,
        repository: ListingRepository,
        logger: Optional[AuditLogger] = None,
        language: str = "en",
    ) -> None:
        """
        Initialize the checkout gate.

        Args:
            checker: Availability checker used for mirrored listings
            repository: Listing persistence receiving SOLD_ON_SOURCE writes
            logger: Optional audit logger
            language: Language of buyer-facing messages
        """
        self._checker = checker
        self._repository = repository
        self._logger = logger
        self._language = language

    async def authorize_checkout(self, listing: Listing) -> GateResult:
        """
        Decide whether checkout of a listing may proceed.

        A listing already in SOLD_ON_SOURCE is BLOCKED without fetching its
        source page, since that state is only cleared by a manual reactivate.

        Args:
            listing: The listing being purchased

        Returns:
            GateResult with decision PROCEED, BLOCKED or PROCEED_UNVERIFIED
        """
        if not listing.is_mirrored:
            return self._decide(GateResult(
                listing_id=listing.id,
                decision=CheckoutDecision.PROCEED,
            ))

        if listing.availability_state == ListingAvailabilityState.SOLD_ON_SOURCE:
            return self._decide(GateResult(
                listing_id=listing.id,
                decision=CheckoutDecision.BLOCKED,
                verdict=AvailabilityVerdict.SOLD,
                message=get_message("gate.blocked_sold_on_source", self._language),
            ))

        verdict = await self._checker.check(listing.source_url, listing.platform)

        if verdict == AvailabilityVerdict.SOLD:
            return self._decide(self._block_sold(listing))

        if verdict == AvailabilityVerdict.AVAILABLE:
            return self._decide(GateResult(
                listing_id=listing.id,
                decision=CheckoutDecision.PROCEED,
                verdict=verdict,
            ))

        return self._decide(GateResult(
            listing_id=listing.id,
            decision=CheckoutDecision.PROCEED_UNVERIFIED,
            verdict=AvailabilityVerdict.UNKNOWN,
        ))

    def authorize_checkout_sync(self, listing: Listing) -> GateResult:
        """Blocking wrapper around authorize_checkout() for synchronous callers."""
        return asyncio.run(self.authorize_checkout(listing))

    def _block_sold(self, listing: Listing) -> GateResult:
        result = GateResult(
            listing_id=listing.id,
            decision=CheckoutDecision.BLOCKED,
            verdict=AvailabilityVerdict.SOLD,
            message=get_message("gate.blocked_sold_on_source", self._language),
        )

        # The decision stays BLOCKED even when the write fails
        try:
            result.state_changed = self._repository.mark_sold_on_source(listing.id)
        except (PersistenceError, ListingNotFoundError) as e:
            result.errors.append(
                get_message("gate.persistence_failed", self._language, listing_id=listing.id)
            )
            if self._logger:
                self._logger.log_error(
                    "CheckoutGate",
                    "Failed to record SOLD_ON_SOURCE",
                    error=e,
                    additional_data={"listing_id": listing.id},
                )
        else:
            if result.state_changed:
                self._log(
                    LogLevel.INFO,
                    f"Listing {listing.id} marked sold on source",
                    {"listing_id": listing.id, "source_url": listing.source_url},
                )

        return result

    def _decide(self, result: GateResult) -> GateResult:
        if self._logger:
            self._logger.log_decision(result)
        return result

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "CheckoutGate", message, data)

    @property
    def checker(self) -> AvailabilityChecker:
        return self._checker

    @property
    def repository(self) -> ListingRepository:
        return self._repository
