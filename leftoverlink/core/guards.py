# leftoverlink/core/guards.py
"""
Conditions that must hold at the moment a listing is mutated.

A guard is evaluated twice: once in Python against a listing (``violation``)
and once inside the store's atomic update, where ``to_mongo`` renders the same
condition as a query filter. A write only lands if the condition still holds.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from leftoverlink.core.errors import Conflict, Forbidden, InvalidState, ListingError, NotFound, ValidationError
from leftoverlink.core.states import CLAIM_EFFECTS, TRANSITIONS, can_review, can_transition, is_terminal
from leftoverlink.schemas import ClaimStatus, Listing, ListingStatus
from leftoverlink.services.expiry import effective_status, is_available


def ensure_owner(listing: Listing, user_id: str, action: str = "modify") -> None:
    if listing.donor_id != user_id:
        raise Forbidden(f"Not authorized to {action} this listing")


def ensure_future_expiry(expiry_time: datetime, now: datetime) -> None:
    if expiry_time <= now:
        raise ValidationError("Expiry time must be in the future")


def ensure_editable(listing: Listing, patch: dict, now: datetime) -> None:
    """Owner already checked; refuse edits to a finished listing, then a stale expiry."""
    if is_terminal(effective_status(listing, now)):
        raise InvalidState("Cannot update expired or completed listings")
    if "expiry_time" in patch:
        ensure_future_expiry(patch["expiry_time"], now)


@dataclass(frozen=True)
class ClaimGuard:
    user_id: str
    now: datetime

    def violation(self, listing: Listing) -> Optional[ListingError]:
        if not is_available(listing, self.now):
            return InvalidState("Listing is no longer available")
        if listing.donor_id == self.user_id:
            return InvalidState("Cannot claim your own listing")
        if listing.claim_by(self.user_id) is not None:
            return Conflict("You have already claimed this listing")
        return None

    def to_mongo(self) -> dict:
        return {
            "status": ListingStatus.AVAILABLE.value,
            "expiry_time": {"$gt": self.now},
            "donor_id": {"$ne": self.user_id},
            "claims.user_id": {"$ne": self.user_id},
        }


def _owner_sources(dst: str) -> list:
    return [src for (src, d), rule in TRANSITIONS.items() if d == dst and rule["by"] == "owner"]


# claim status a review expects to find, keyed by the status it moves to
REVIEW_FROM = {
    ClaimStatus.APPROVED.value: ClaimStatus.PENDING.value,
    ClaimStatus.REJECTED.value: ClaimStatus.PENDING.value,
    ClaimStatus.COMPLETED.value: ClaimStatus.APPROVED.value,
}


@dataclass(frozen=True)
class ReviewGuard:
    owner_id: str
    claimant_id: str
    to_status: str
    now: datetime

    @property
    def from_status(self) -> str:
        return REVIEW_FROM[self.to_status]

    @property
    def listing_effect(self) -> Optional[str]:
        return CLAIM_EFFECTS.get(self.to_status)

    def _listing_ok(self, listing: Listing) -> bool:
        if self.to_status == ClaimStatus.APPROVED.value:
            return is_available(listing, self.now)
        if self.listing_effect is not None:
            return can_transition(listing.status, self.listing_effect)
        return listing.status != ListingStatus.COMPLETED.value

    def violation(self, listing: Listing) -> Optional[ListingError]:
        if listing.donor_id != self.owner_id:
            return Forbidden("Not authorized to review claims on this listing")
        claim = listing.claim_by(self.claimant_id)
        if claim is None:
            return NotFound("Claim not found")
        if not can_review(claim.status, self.to_status):
            return InvalidState(f"Claim cannot move from {claim.status} to {self.to_status}")
        if not self._listing_ok(listing):
            return InvalidState(f"Listing is {listing.status}; cannot mark claim {self.to_status}")
        return None

    def to_mongo(self) -> dict:
        flt: dict = {
            "donor_id": self.owner_id,
            "claims": {"$elemMatch": {"user_id": self.claimant_id, "status": self.from_status}},
        }
        if self.to_status == ClaimStatus.APPROVED.value:
            flt["status"] = ListingStatus.AVAILABLE.value
            flt["expiry_time"] = {"$gt": self.now}
        elif self.listing_effect is not None:
            flt["status"] = {"$in": _owner_sources(self.listing_effect)}
        else:
            flt["status"] = {"$ne": ListingStatus.COMPLETED.value}
        return flt

