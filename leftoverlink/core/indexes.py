# leftoverlink/core/indexes.py
from pymongo import ASCENDING, DESCENDING, GEOSPHERE


async def ensure_index(col, keys, name: str, **kwargs):
    existing = [ix["name"] async for ix in col.list_indexes()]
    if name in existing:
        return
    await col.create_index(keys, name=name, **kwargs)


async def ensure_indexes(db):
    # No TTL index on expiry_time: expiry is a status change, not a delete.
    await ensure_index(db.listings, [("location", GEOSPHERE)], "location_2dsphere")
    await ensure_index(db.listings, [("status", ASCENDING), ("expiry_time", ASCENDING)], "status_1_expiry_time_1")
    await ensure_index(db.listings, [("donor_id", ASCENDING), ("created_at", DESCENDING)], "donor_id_1_created_at_-1")
    await ensure_index(db.listings, [("category", ASCENDING), ("status", ASCENDING)], "category_1_status_1")
    await ensure_index(db.listings, [("claims.user_id", ASCENDING)], "claims_user_id_1")
