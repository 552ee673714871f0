# leftoverlink/db.py
from functools import lru_cache

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from leftoverlink.core.config import settings


@lru_cache(maxsize=1)
def get_client() -> AsyncIOMotorClient:
    # Cached to play nicely with uvicorn --reload
    return AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)


def get_db() -> AsyncIOMotorDatabase:
    return get_client()[settings.mongo_db]

