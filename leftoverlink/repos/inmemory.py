# leftoverlink/repos/inmemory.py
import asyncio
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from leftoverlink.core.errors import NotFound
from leftoverlink.core.guards import ClaimGuard, ReviewGuard, ensure_editable, ensure_owner
from leftoverlink.repos.base import ListingFilter
from leftoverlink.schemas import Claim, DonorProfile, Listing, ListingStatus
from leftoverlink.services.expiry import effective_status
from leftoverlink.services.geo import GridGeoIndex


def _id() -> str:
    return uuid.uuid4().hex


def _page(items: list, skip: int, limit: int) -> list:
    return items[skip:skip + limit] if limit else items[skip:]


class InMemoryListingStore:
    """
    Process-local listing store.

    Every operation runs under one ``asyncio.Lock`` so a guard check and the
    write it protects can't interleave with another request.
    """

    def __init__(self, cell_deg: float = 0.5):
        self.listings: Dict[str, Listing] = {}
        self.geo = GridGeoIndex(cell_deg)
        self._lock = asyncio.Lock()

    def _require(self, listing_id: str) -> Listing:
        listing = self.listings.get(listing_id)
        if listing is None:
            raise NotFound("Listing not found")
        return listing

    @staticmethod
    def _out(listing: Listing) -> Listing:
        return listing.model_copy(deep=True)

    # Listings
    async def create(self, listing: Listing) -> Listing:
        async with self._lock:
            doc = listing.model_copy(deep=True, update={"id": _id()})
            self.listings[doc.id] = doc
            self.geo.insert(doc.id, doc.location.lng, doc.location.lat)
            return self._out(doc)

    async def get(self, listing_id: str) -> Listing:
        async with self._lock:
            return self._out(self._require(listing_id))

    async def update_fields(self, listing_id: str, owner_id: str, patch: dict, now: datetime) -> Listing:
        async with self._lock:
            listing = self._require(listing_id)
            ensure_owner(listing, owner_id, "update")
            ensure_editable(listing, patch, now)
            updated = Listing.model_validate({**listing.model_dump(), **patch, "updated_at": now})
            self.listings[listing_id] = updated
            return self._out(updated)

    async def delete(self, listing_id: str, owner_id: str) -> None:
        async with self._lock:
            listing = self._require(listing_id)
            ensure_owner(listing, owner_id, "delete")
            del self.listings[listing_id]
            self.geo.remove(listing_id)

    async def append_claim_atomic(self, listing_id: str, claim: Claim, guard: ClaimGuard) -> Listing:
        async with self._lock:
            listing = self._require(listing_id)
            err = guard.violation(listing)
            if err is not None:
                raise err
            listing.claims.append(claim.model_copy())
            listing.updated_at = guard.now
            return self._out(listing)

    async def review_claim_atomic(self, listing_id: str, guard: ReviewGuard) -> Listing:
        async with self._lock:
            listing = self._require(listing_id)
            err = guard.violation(listing)
            if err is not None:
                raise err
            listing.claim_by(guard.claimant_id).status = guard.to_status
            if guard.listing_effect is not None:
                listing.status = guard.listing_effect
            listing.updated_at = guard.now
            return self._out(listing)

    async def record_view(self, listing_id: str, now: datetime) -> Listing:
        async with self._lock:
            listing = self._require(listing_id)
            listing.views += 1
            if effective_status(listing, now) != listing.status:
                listing.status = ListingStatus.EXPIRED.value
                listing.updated_at = now
            return self._out(listing)

    async def find(self, flt: ListingFilter, skip: int = 0, limit: int = 0) -> List[Listing]:
        async with self._lock:
            rows = [l for l in self.listings.values() if flt.matches(l)]
            rows.sort(key=lambda l: l.created_at, reverse=True)
            return [self._out(l) for l in _page(rows, skip, limit)]

    async def count(self, flt: ListingFilter) -> int:
        async with self._lock:
            return sum(1 for l in self.listings.values() if flt.matches(l))

    async def near(self, lng: float, lat: float, radius_m: float, flt: ListingFilter,
                   skip: int = 0, limit: int = 0) -> List[Tuple[Listing, float]]:
        async with self._lock:
            rows = []
            for key, dist in self.geo.within(lng, lat, radius_m):
                listing = self.listings[key]
                if flt.matches(listing):
                    rows.append((listing, dist))
            rows.sort(key=lambda r: (r[1], r[0].expiry_time))
            return [(self._out(l), d) for l, d in _page(rows, skip, limit)]

    async def expire_due(self, now: datetime) -> int:
        async with self._lock:
            n = 0
            for listing in self.listings.values():
                if listing.status == ListingStatus.AVAILABLE and listing.expiry_time <= now:
                    listing.status = ListingStatus.EXPIRED.value
                    listing.updated_at = now
                    n += 1
            return n


class InMemoryUserDirectory:
    def __init__(self, profiles: Optional[Dict[str, DonorProfile]] = None):
        self.profiles: Dict[str, DonorProfile] = dict(profiles or {})
        self.food_shared: Dict[str, int] = {}

    async def get_profile(self, user_id: str) -> Optional[DonorProfile]:
        return self.profiles.get(user_id)

    async def record_listing_shared(self, user_id: str) -> None:
        self.food_shared[user_id] = self.food_shared.get(user_id, 0) + 1
