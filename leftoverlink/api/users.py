# leftoverlink/api/users.py
from typing import Optional

from fastapi import APIRouter, Query

from leftoverlink.deps import ClockDep, StoreDep, UserDep
from leftoverlink.schemas import ClaimStatus, ListingStatus
from leftoverlink.services import listings as svc

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/listings")
async def my_listings(
    user: UserDep,
    store: StoreDep,
    clock: ClockDep,
    status: Optional[ListingStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    items, total = await svc.my_listings(store, user, status.value if status else None, page, limit, clock())
    return {
        "success": True,
        "count": len(items),
        "total": total,
        "currentPage": page,
        "totalPages": svc.total_pages(total, limit),
        "data": items,
    }


@router.get("/claims")
async def my_claims(
    user: UserDep,
    store: StoreDep,
    status: Optional[ClaimStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    records = await svc.my_claims(store, user, status.value if status else None, page, limit)
    return {"success": True, "count": len(records), "data": records}


@router.get("/stats")
async def my_stats(user: UserDep, store: StoreDep):
    return {"success": True, "data": await svc.user_stats(store, user)}
