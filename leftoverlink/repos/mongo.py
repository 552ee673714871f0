# leftoverlink/repos/mongo.py
import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from leftoverlink.core.errors import Conflict, InvalidState, ListingError, NotFound
from leftoverlink.core.guards import ClaimGuard, ReviewGuard, ensure_editable, ensure_owner
from leftoverlink.core.states import TERMINAL, is_terminal
from leftoverlink.repos.base import ListingFilter
from leftoverlink.schemas import Claim, DonorProfile, Listing, ListingStatus
from leftoverlink.services.expiry import effective_status

logger = logging.getLogger(__name__)


def _oid(s) -> Optional[ObjectId]:
    return ObjectId(s) if isinstance(s, str) and ObjectId.is_valid(s) else None


def _to_doc(listing: Listing) -> dict:
    return listing.model_dump(exclude={"id"})


def _from_doc(doc: dict) -> Listing:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    doc.pop("distance", None)
    return Listing.model_validate(doc)


class MongoListingStore:
    """
    Listing store over a Motor database.

    Conditional writes go through ``find_one_and_update`` with the guard folded
    into the filter, so MongoDB's single-document atomicity is what arbitrates
    concurrent requests. When the filter misses, the document is re-read only
    to explain why.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db["listings"]

    async def _load(self, oid: Optional[ObjectId]) -> Listing:
        doc = await self.col.find_one({"_id": oid}) if oid else None
        if not doc:
            raise NotFound("Listing not found")
        return _from_doc(doc)

    async def _explain_miss(self, oid: ObjectId, why: Callable[[Listing], Optional[ListingError]]) -> ListingError:
        listing = await self._load(oid)
        err = why(listing)
        # the filter missed but the re-read passes: someone else got there in between
        return err or Conflict("Listing changed concurrently; retry")

    # Listings
    async def create(self, listing: Listing) -> Listing:
        res = await self.col.insert_one(_to_doc(listing))
        return listing.model_copy(update={"id": str(res.inserted_id)})

    async def get(self, listing_id: str) -> Listing:
        return await self._load(_oid(listing_id))

    async def update_fields(self, listing_id: str, owner_id: str, patch: dict, now: datetime) -> Listing:
        oid = _oid(listing_id)
        listing = await self._load(oid)
        ensure_owner(listing, owner_id, "update")
        ensure_editable(listing, patch, now)

        flt = {
            "_id": oid,
            "donor_id": owner_id,
            "status": {"$nin": sorted(TERMINAL)},
            "$or": [{"status": {"$ne": ListingStatus.AVAILABLE.value}}, {"expiry_time": {"$gt": now}}],
        }
        doc = await self.col.find_one_and_update(
            flt, {"$set": {**patch, "updated_at": now}}, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            def why(l: Listing):
                if is_terminal(effective_status(l, now)):
                    return InvalidState("Cannot update expired or completed listings")
                return None
            raise await self._explain_miss(oid, why)
        return _from_doc(doc)

    async def delete(self, listing_id: str, owner_id: str) -> None:
        oid = _oid(listing_id)
        listing = await self._load(oid)
        ensure_owner(listing, owner_id, "delete")
        res = await self.col.delete_one({"_id": oid, "donor_id": owner_id})
        if res.deleted_count == 0:
            raise NotFound("Listing not found")

    async def append_claim_atomic(self, listing_id: str, claim: Claim, guard: ClaimGuard) -> Listing:
        oid = _oid(listing_id)
        if oid is None:
            raise NotFound("Listing not found")
        doc = await self.col.find_one_and_update(
            {"_id": oid, **guard.to_mongo()},
            {"$push": {"claims": claim.model_dump()}, "$set": {"updated_at": guard.now}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise await self._explain_miss(oid, guard.violation)
        return _from_doc(doc)

    async def review_claim_atomic(self, listing_id: str, guard: ReviewGuard) -> Listing:
        oid = _oid(listing_id)
        if oid is None:
            raise NotFound("Listing not found")
        changes = {"claims.$.status": guard.to_status, "updated_at": guard.now}
        if guard.listing_effect is not None:
            changes["status"] = guard.listing_effect
        doc = await self.col.find_one_and_update(
            {"_id": oid, **guard.to_mongo()},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise await self._explain_miss(oid, guard.violation)
        return _from_doc(doc)

    async def record_view(self, listing_id: str, now: datetime) -> Listing:
        oid = _oid(listing_id)
        doc = await self.col.find_one_and_update(
            {"_id": oid}, {"$inc": {"views": 1}}, return_document=ReturnDocument.AFTER
        ) if oid else None
        if not doc:
            raise NotFound("Listing not found")
        listing = _from_doc(doc)
        if effective_status(listing, now) != listing.status:
            await self.col.update_one(
                {"_id": oid, "status": ListingStatus.AVAILABLE.value, "expiry_time": {"$lte": now}},
                {"$set": {"status": ListingStatus.EXPIRED.value, "updated_at": now}},
            )
            listing.status = ListingStatus.EXPIRED.value
            listing.updated_at = now
        return listing

    async def find(self, flt: ListingFilter, skip: int = 0, limit: int = 0) -> List[Listing]:
        cur = self.col.find(flt.to_mongo()).sort("created_at", -1).skip(skip).limit(limit)
        return [_from_doc(d) async for d in cur]

    async def count(self, flt: ListingFilter) -> int:
        return await self.col.count_documents(flt.to_mongo())

    async def near(self, lng: float, lat: float, radius_m: float, flt: ListingFilter,
                   skip: int = 0, limit: int = 0) -> List[Tuple[Listing, float]]:
        pipeline = [
            {
                "$geoNear": {
                    "near": {"type": "Point", "coordinates": [lng, lat]},
                    "key": "location",
                    "distanceField": "distance",
                    "maxDistance": radius_m,
                    "spherical": True,
                    "query": flt.to_mongo(),
                }
            },
            {"$sort": {"distance": 1, "expiry_time": 1}},
            {"$skip": skip},
        ]
        if limit:
            pipeline.append({"$limit": limit})
        out = []
        async for d in self.col.aggregate(pipeline):
            out.append((_from_doc(d), float(d["distance"])))
        return out

    async def expire_due(self, now: datetime) -> int:
        res = await self.col.update_many(
            {"status": ListingStatus.AVAILABLE.value, "expiry_time": {"$lte": now}},
            {"$set": {"status": ListingStatus.EXPIRED.value, "updated_at": now}},
        )
        return res.modified_count


class MongoUserDirectory:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.col = db["users"]

    async def get_profile(self, user_id: str) -> Optional[DonorProfile]:
        oid = _oid(user_id)
        doc = await self.col.find_one(
            {"_id": oid if oid else user_id}, {"name": 1, "organization": 1, "verified": 1}
        )
        if not doc:
            return None
        return DonorProfile(
            name=doc.get("name") or "",
            organization=doc.get("organization") or None,
            verified=bool(doc.get("verified", False)),
        )

    async def record_listing_shared(self, user_id: str) -> None:
        oid = _oid(user_id)
        res = await self.col.update_one({"_id": oid if oid else user_id}, {"$inc": {"stats.foodShared": 1}})
        if res.matched_count == 0:
            logger.warning("stats update skipped; user %s not found", user_id)
