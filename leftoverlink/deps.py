# leftoverlink/deps.py
"""Shared dependencies: store, user directory, clock, current user."""
from datetime import datetime, timezone
from typing import Annotated, Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from leftoverlink.core.config import settings
from leftoverlink.core.errors import Unauthorized
from leftoverlink.core.jwt import decode_access_token
from leftoverlink.repos.base import ListingStore, UserDirectory
from leftoverlink.schemas import CurrentUser

security = HTTPBearer(auto_error=False)

if settings.use_mongo:
    from leftoverlink.db import get_db
    from leftoverlink.repos.mongo import MongoListingStore, MongoUserDirectory
    _store_singleton = MongoListingStore(get_db())
    _directory_singleton = MongoUserDirectory(get_db())
else:
    from leftoverlink.repos.inmemory import InMemoryListingStore, InMemoryUserDirectory
    _store_singleton = InMemoryListingStore()
    _directory_singleton = InMemoryUserDirectory()


def get_store() -> ListingStore:
    return _store_singleton


def get_user_directory() -> UserDirectory:
    return _directory_singleton


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Callable[[], datetime]:
    return utcnow


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> CurrentUser:
    """Trust the (user id, role) pair carried by a valid bearer token."""
    if not credentials:
        raise Unauthorized("No token provided, authorization denied")
    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise Unauthorized("Invalid token, authorization denied")
    if payload.get("role") not in ("donor", "recipient", "charity"):
        raise Unauthorized("Token carries no valid role")
    return CurrentUser(user_id=str(payload["sub"]), user_type=payload["role"])


StoreDep = Annotated[ListingStore, Depends(get_store)]
DirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]
ClockDep = Annotated[Callable[[], datetime], Depends(get_clock)]
UserDep = Annotated[CurrentUser, Depends(get_current_user)]
