"""
Listing persistence for the checkout gate.

The gate depends only on the ListingRepository protocol. Two
implementations are provided:
- InMemoryListingRepository, for embedding and tests
- ListingStore, a JSON file protected by HMAC-SHA256 that detects tampering

Both implement mark_sold_on_source() as an unconditional set, so concurrent
or repeated writes after a SOLD verdict are harmless. Nothing in this
subsystem moves a listing back to ACTIVE; reactivate() is the explicit
manual path for that.
"""

import hashlib
import hmac
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable

from .enums import ListingAvailabilityState
from .exceptions import (
    ConfigurationError,
    ListingNotFoundError,
    PersistenceError,
    TamperingError,
)
from .models import Listing


@runtime_checkable
class ListingRepository(Protocol):
    """Protocol for the listing-persistence collaborator."""

    def get(self, listing_id: str) -> Optional[Listing]:
        """Return the listing or None."""
        ...

    def mark_sold_on_source(self, listing_id: str) -> bool:
        """
        Set the listing state to SOLD_ON_SOURCE.

        Returns:
            True if the state changed, False if it was already set

        Raises:
            ListingNotFoundError: If the listing does not exist
            PersistenceError: If the change cannot be stored
        """
        ...


def _copy(listing: Listing) -> Listing:
    return Listing(
        id=listing.id,
        source_url=listing.source_url,
        availability_state=listing.availability_state,
        title=listing.title,
        platform=listing.platform,
    )


def check_listing_platform(listing: Listing, platforms: Optional[frozenset[str]]) -> None:
    """
    Reject a listing whose platform has no registered signal table.

    A listing without a platform resolves by host at check time and is
    always accepted. With platforms=None no check is made.

    Raises:
        ConfigurationError: If the listing names an unregistered platform
    """
    if platforms is None or listing.platform is None:
        return
    if listing.platform not in platforms:
        raise ConfigurationError(
            code="unknown_platform",
            message=f"No signals registered for platform: {listing.platform}",
            details={
                "listing_id": listing.id,
                "platform": listing.platform,
                "registered": sorted(platforms),
            },
        )


class InMemoryListingRepository:
    """Dictionary-backed listing repository."""

    def __init__(
        self,
        listings: Optional[list[Listing]] = None,
        platforms: Optional[Iterable[str]] = None,
    ) -> None:
        self._listings: dict[str, Listing] = {}
        self._platforms = frozenset(platforms) if platforms is not None else None
        self.write_count = 0
        for listing in listings or []:
            self.add(listing)

    def add(self, listing: Listing) -> None:
        """
        Insert or replace a listing.

        Raises:
            ConfigurationError: If the listing names an unregistered platform
        """
        check_listing_platform(listing, self._platforms)
        self._listings[listing.id] = _copy(listing)

    def get(self, listing_id: str) -> Optional[Listing]:
        listing = self._listings.get(listing_id)
        return _copy(listing) if listing else None

    def mark_sold_on_source(self, listing_id: str) -> bool:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise ListingNotFoundError(
                code="listing_not_found",
                message=f"Listing not found: {listing_id}",
                details={"listing_id": listing_id},
            )
        self.write_count += 1
        changed = listing.availability_state != ListingAvailabilityState.SOLD_ON_SOURCE
        listing.availability_state = ListingAvailabilityState.SOLD_ON_SOURCE
        return changed


class ListingStore:
    """
    File-backed listing store with HMAC protection.

    Stores listings as JSON with an HMAC over the payload so that manual
    edits or corruption are detected on load.
    """

    VERSION = 1

    def __init__(
        self,
        file_path: Path,
        hmac_secret: str,
        platforms: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Initialize the listing store.

        Args:
            file_path: Path to the listing file (JSON format)
            hmac_secret: Secret key for HMAC computation
            platforms: Registered platform names; add() rejects any other
                platform. None disables the check.
        """
        self._file_path = file_path
        self._hmac_secret = hmac_secret.encode("utf-8")
        self._platforms = frozenset(platforms) if platforms is not None else None
        self._listings: dict[str, Listing] = {}
        self._last_updated = ""

    def load(self) -> dict[str, Listing]:
        """
        Load listings from file and validate HMAC.

        A missing file yields an empty store.

        Raises:
            TamperingError: If HMAC validation fails
            PersistenceError: If file cannot be read or parsed
        """
        if not self._file_path.exists():
            self._listings = {}
            return {}

        try:
            with open(self._file_path, "r", encoding="utf-8") as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Failed to parse listing file: {e}",
                details={"file_path": str(self._file_path)},
            )
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to read listing file: {e}",
                details={"file_path": str(self._file_path)},
            )

        stored_hmac = raw_data.get("hmac", "")
        computed_hmac = self.compute_hmac({
            "version": raw_data.get("version"),
            "listings": raw_data.get("listings", {}),
            "last_updated": raw_data.get("last_updated"),
        })

        if not self.validate_hmac(stored_hmac, computed_hmac):
            raise TamperingError(
                code="hmac_mismatch",
                message="HMAC validation failed - listing data may have been tampered with",
                details={"file_path": str(self._file_path)},
            )

        listings: dict[str, Listing] = {}
        try:
            for listing_id, item in raw_data.get("listings", {}).items():
                listings[listing_id] = Listing(
                    id=listing_id,
                    source_url=item.get("source_url"),
                    availability_state=ListingAvailabilityState(item["availability_state"]),
                    title=item.get("title", ""),
                    platform=item.get("platform"),
                )
        except (KeyError, ValueError) as e:
            raise PersistenceError(
                code="parse_error",
                message=f"Invalid listing record: {e}",
                details={"file_path": str(self._file_path)},
            )

        self._listings = listings
        self._last_updated = raw_data.get("last_updated", "")
        return {k: _copy(v) for k, v in listings.items()}

    def save(self) -> None:
        """
        Save listings to file with HMAC protection.

        Raises:
            PersistenceError: If file cannot be written
        """
        now = datetime.now(timezone.utc).isoformat()
        listings_dict = {
            listing_id: {
                "source_url": listing.source_url,
                "availability_state": listing.availability_state.value,
                "title": listing.title,
                "platform": listing.platform,
            }
            for listing_id, listing in self._listings.items()
        }

        computed_hmac = self.compute_hmac({
            "version": self.VERSION,
            "listings": listings_dict,
            "last_updated": now,
        })
        output_data = {
            "version": self.VERSION,
            "listings": listings_dict,
            "last_updated": now,
            "hmac": computed_hmac,
        }

        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._file_path, "w", encoding="utf-8") as f:
                json.dump(output_data, f, indent=2, sort_keys=True)
        except OSError as e:
            raise PersistenceError(
                code="io_error",
                message=f"Failed to write listing file: {e}",
                details={"file_path": str(self._file_path)},
            )

        self._last_updated = now

    def get(self, listing_id: str) -> Optional[Listing]:
        listing = self._listings.get(listing_id)
        return _copy(listing) if listing else None

    def list(self) -> list[Listing]:
        """All listings, sorted by id."""
        return [_copy(self._listings[k]) for k in sorted(self._listings)]

    def add(self, listing: Listing) -> None:
        """
        Insert or replace a listing and persist.

        Raises:
            ConfigurationError: If the listing names an unregistered platform
            PersistenceError: If the file cannot be written
        """
        check_listing_platform(listing, self._platforms)
        self._listings[listing.id] = _copy(listing)
        self.save()

    def mark_sold_on_source(self, listing_id: str) -> bool:
        listing = self._require(listing_id)
        if listing.availability_state == ListingAvailabilityState.SOLD_ON_SOURCE:
            return False
        listing.availability_state = ListingAvailabilityState.SOLD_ON_SOURCE
        self.save()
        return True

    def reactivate(self, listing_id: str) -> bool:
        """
        Manually move a listing back to ACTIVE.

        Only for human or re-ingestion actions; never called by the gate.
        """
        listing = self._require(listing_id)
        if listing.availability_state == ListingAvailabilityState.ACTIVE:
            return False
        listing.availability_state = ListingAvailabilityState.ACTIVE
        self.save()
        return True

    def _require(self, listing_id: str) -> Listing:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise ListingNotFoundError(
                code="listing_not_found",
                message=f"Listing not found: {listing_id}",
                details={"listing_id": listing_id},
            )
        return listing

    def compute_hmac(self, data: dict) -> str:
        """Compute HMAC-SHA256 over the canonical JSON of data."""
        serialized = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hmac.new(
            self._hmac_secret,
            serialized.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def validate_hmac(self, stored_hmac: str, computed_hmac: str) -> bool:
        """Validate HMAC using constant-time comparison."""
        return hmac.compare_digest(stored_hmac, computed_hmac)

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def last_updated(self) -> str:
        return self._last_updated
