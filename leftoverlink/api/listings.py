# leftoverlink/api/listings.py
from typing import Optional

from fastapi import APIRouter, Query, status

from leftoverlink.core.config import settings
from leftoverlink.deps import ClockDep, DirectoryDep, StoreDep, UserDep
from leftoverlink.schemas import Category, ClaimIn, ClaimReviewIn, ListingIn, ListingQuery, ListingUpdate
from leftoverlink.services import listings as svc
from leftoverlink.services.claims import ClaimCoordinator
from leftoverlink.services.expiry import enrich
from leftoverlink.services.search import SearchRanker

router = APIRouter(prefix="/api/listings", tags=["listings"])


@router.get("")
async def search_listings(
    store: StoreDep,
    clock: ClockDep,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    radius: float = Query(settings.default_radius_km, ge=0.1, le=100, description="km"),
    category: Optional[Category] = None,
    search: Optional[str] = Query(None, max_length=200),
    limit: int = Query(settings.default_page_size, ge=1, le=100),
    page: int = Query(1, ge=1),
):
    query = ListingQuery(lat=lat, lng=lng, radius_km=radius, category=category,
                         search=search, page=page, page_size=limit)
    result = await SearchRanker(store).search(query, clock())
    return {"success": True, "count": len(result.items), "data": result.items}


@router.get("/{listing_id}")
async def get_listing(listing_id: str, store: StoreDep, clock: ClockDep):
    return {"success": True, "data": await svc.view_listing(store, listing_id, clock())}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_listing(body: ListingIn, user: UserDep, store: StoreDep, directory: DirectoryDep, clock: ClockDep):
    now = clock()
    listing = await svc.create_listing(store, directory, user, body, now)
    return {"success": True, "message": "Listing created successfully", "data": enrich(listing, now)}


@router.put("/{listing_id}")
async def update_listing(listing_id: str, body: ListingUpdate, user: UserDep, store: StoreDep, clock: ClockDep):
    updated = await svc.update_listing(store, user, listing_id, body, clock())
    return {"success": True, "message": "Listing updated successfully", "data": updated}


@router.post("/{listing_id}/claim")
async def claim_listing(listing_id: str, user: UserDep, store: StoreDep, clock: ClockDep,
                        body: Optional[ClaimIn] = None):
    message = body.message if body else None
    await ClaimCoordinator(store).claim(listing_id, user.user_id, message, clock())
    return {"success": True, "message": "Listing claimed successfully! The donor will be notified."}


@router.patch("/{listing_id}/claims/{claimant_id}")
async def review_claim(listing_id: str, claimant_id: str, body: ClaimReviewIn,
                       user: UserDep, store: StoreDep, clock: ClockDep):
    now = clock()
    updated = await ClaimCoordinator(store).review(listing_id, user.user_id, claimant_id, body.status, now)
    return {"success": True, "message": f"Claim {body.status}", "data": enrich(updated, now)}


@router.delete("/{listing_id}")
async def delete_listing(listing_id: str, user: UserDep, store: StoreDep):
    await svc.delete_listing(store, user, listing_id)
    return {"success": True, "message": "Listing deleted successfully"}
