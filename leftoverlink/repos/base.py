# leftoverlink/repos/base.py
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from leftoverlink.core.guards import ClaimGuard, ReviewGuard
from leftoverlink.schemas import Claim, DonorProfile, Listing, ListingStatus


@dataclass(frozen=True)
class ListingFilter:
    """Conjunction of optional conditions; ``None`` means "don't care"."""
    available_at: Optional[datetime] = None
    category: Optional[str] = None
    text: Optional[str] = None
    donor_id: Optional[str] = None
    status: Optional[str] = None
    claimed_by: Optional[str] = None
    claim_status: Optional[str] = None

    def matches(self, listing: Listing) -> bool:
        if self.available_at is not None and not (
            listing.status == ListingStatus.AVAILABLE and listing.expiry_time > self.available_at
        ):
            return False
        if self.category is not None and listing.category != self.category:
            return False
        if self.donor_id is not None and listing.donor_id != self.donor_id:
            return False
        if self.status is not None and listing.status != self.status:
            return False
        if self.claimed_by is not None:
            claim = listing.claim_by(self.claimed_by)
            if claim is None:
                return False
            if self.claim_status is not None and claim.status != self.claim_status:
                return False
        if self.text:
            needle = self.text.lower()
            fields = (listing.title, listing.description, listing.donor_name)
            if not any(needle in (f or "").lower() for f in fields):
                return False
        return True

    def to_mongo(self) -> dict:
        q: dict = {}
        if self.available_at is not None:
            q["status"] = ListingStatus.AVAILABLE.value
            q["expiry_time"] = {"$gt": self.available_at}
        if self.status is not None:
            q["status"] = self.status
        if self.category is not None:
            q["category"] = self.category
        if self.donor_id is not None:
            q["donor_id"] = self.donor_id
        if self.claimed_by is not None:
            elem = {"user_id": self.claimed_by}
            if self.claim_status is not None:
                elem["status"] = self.claim_status
            q["claims"] = {"$elemMatch": elem}
        if self.text:
            rx = {"$regex": re.escape(self.text), "$options": "i"}
            q["$or"] = [{"title": rx}, {"description": rx}, {"donor_name": rx}]
        return q


class ListingStore(Protocol):
    async def create(self, listing: Listing) -> Listing: ...

    async def get(self, listing_id: str) -> Listing: ...

    async def update_fields(self, listing_id: str, owner_id: str, patch: dict, now: datetime) -> Listing: ...

    async def delete(self, listing_id: str, owner_id: str) -> None: ...

    async def append_claim_atomic(self, listing_id: str, claim: Claim, guard: ClaimGuard) -> Listing: ...

    async def review_claim_atomic(self, listing_id: str, guard: ReviewGuard) -> Listing: ...

    async def record_view(self, listing_id: str, now: datetime) -> Listing: ...

    async def find(self, flt: ListingFilter, skip: int = 0, limit: int = 0) -> List[Listing]: ...

    async def count(self, flt: ListingFilter) -> int: ...

    async def near(self, lng: float, lat: float, radius_m: float, flt: ListingFilter,
                   skip: int = 0, limit: int = 0) -> List[Tuple[Listing, float]]: ...

    async def expire_due(self, now: datetime) -> int: ...


class UserDirectory(Protocol):
    async def get_profile(self, user_id: str) -> Optional[DonorProfile]: ...

    async def record_listing_shared(self, user_id: str) -> None: ...
