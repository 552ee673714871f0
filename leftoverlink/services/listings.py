# leftoverlink/services/listings.py
import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from leftoverlink.core.errors import Forbidden, NotFound
from leftoverlink.core.guards import ensure_future_expiry
from leftoverlink.repos.base import ListingFilter, ListingStore, UserDirectory
from leftoverlink.schemas import (
    ClaimRecord,
    CurrentUser,
    EnrichedListing,
    Listing,
    ListingIn,
    ListingStatus,
    ListingUpdate,
    UserStats,
)
from leftoverlink.services.expiry import enrich

logger = logging.getLogger(__name__)


async def create_listing(store: ListingStore, directory: UserDirectory, user: CurrentUser,
                         body: ListingIn, now: datetime) -> Listing:
    if user.user_type != "donor":
        raise Forbidden("Only donors can create food listings")
    profile = await directory.get_profile(user.user_id)
    if profile is None:
        raise NotFound("User not found")
    ensure_future_expiry(body.expiry_time, now)

    listing = Listing(
        donor_id=user.user_id,
        donor_name=profile.display_name,
        verified=profile.verified,
        status=ListingStatus.AVAILABLE,
        created_at=now,
        updated_at=now,
        **body.model_dump(),
    )
    saved = await store.create(listing)
    await directory.record_listing_shared(user.user_id)
    logger.info("listing %s created by %s", saved.id, user.user_id)
    return saved


async def view_listing(store: ListingStore, listing_id: str, now: datetime) -> EnrichedListing:
    """Read one listing; counts the view and persists a lapsed expiry."""
    listing = await store.record_view(listing_id, now)
    return enrich(listing, now)


async def update_listing(store: ListingStore, user: CurrentUser, listing_id: str,
                         body: ListingUpdate, now: datetime) -> EnrichedListing:
    listing = await store.update_fields(listing_id, user.user_id, body.patch(), now)
    return enrich(listing, now)


async def delete_listing(store: ListingStore, user: CurrentUser, listing_id: str) -> None:
    await store.delete(listing_id, user.user_id)
    logger.info("listing %s deleted by %s", listing_id, user.user_id)


# --------------------------------------------------
# Per-user views
# --------------------------------------------------
async def my_listings(store: ListingStore, user: CurrentUser, status: Optional[str],
                      page: int, limit: int, now: datetime) -> Tuple[List[EnrichedListing], int]:
    flt = ListingFilter(donor_id=user.user_id, status=status)
    rows = await store.find(flt, skip=(page - 1) * limit, limit=limit)
    total = await store.count(flt)
    return [enrich(l, now, with_claims_count=True) for l in rows], total


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


async def my_claims(store: ListingStore, user: CurrentUser, status: Optional[str],
                    page: int, limit: int) -> List[ClaimRecord]:
    flt = ListingFilter(claimed_by=user.user_id, claim_status=status)
    records = []
    for listing in await store.find(flt):
        records.append(ClaimRecord(
            listing_id=listing.id,
            title=listing.title,
            description=listing.description,
            category=listing.category,
            location=listing.location,
            donor_name=listing.donor_name,
            claim=listing.claim_by(user.user_id),
            listing_status=listing.status,
            expiry_time=listing.expiry_time,
        ))
    records.sort(key=lambda r: r.claim.claimed_at, reverse=True)
    skip = (page - 1) * limit
    return records[skip:skip + limit]


async def user_stats(store: ListingStore, user: CurrentUser) -> UserStats:
    return UserStats(
        total_listings=await store.count(ListingFilter(donor_id=user.user_id)),
        active_listings=await store.count(ListingFilter(donor_id=user.user_id, status=ListingStatus.AVAILABLE.value)),
        completed_listings=await store.count(ListingFilter(donor_id=user.user_id, status=ListingStatus.COMPLETED.value)),
        claims_made=await store.count(ListingFilter(claimed_by=user.user_id)),
    )
