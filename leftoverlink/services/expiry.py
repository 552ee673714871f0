# leftoverlink/services/expiry.py
"""
Time-derived views of a listing.

All helpers are pure functions of ``(listing, now)``: nothing here reads the
wall clock or writes to the store. The periodic write side lives in
``leftoverlink.tasks.expiry_sweep``.
"""
from datetime import datetime, timedelta
from typing import Optional

from leftoverlink.schemas import EnrichedListing, Listing, ListingStatus, UrgencyLevel

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
METERS_PER_MILE = 1609.34


def is_available(listing: Listing, now: datetime) -> bool:
    return listing.status == ListingStatus.AVAILABLE and listing.expiry_time > now


def effective_status(listing: Listing, now: datetime) -> str:
    # an available listing past its expiry reads as expired before the sweep persists it
    if listing.status == ListingStatus.AVAILABLE and listing.expiry_time <= now:
        return ListingStatus.EXPIRED.value
    return listing.status


def time_remaining(listing: Listing, now: datetime) -> str:
    diff = listing.expiry_time - now
    if diff <= timedelta(0):
        return "Expired"
    ms = diff // timedelta(milliseconds=1)
    hours = ms // MS_PER_HOUR
    minutes = (ms % MS_PER_HOUR) // MS_PER_MINUTE
    if hours > 0:
        return f"{hours}h {minutes}m remaining"
    return f"{minutes}m remaining"


def urgency_level(listing: Listing, now: datetime) -> str:
    hours = (listing.expiry_time - now) / timedelta(hours=1)
    if hours < 1:
        return UrgencyLevel.URGENT.value
    if hours < 3:
        return UrgencyLevel.MODERATE.value
    return UrgencyLevel.GOOD.value


def enrich(listing: Listing, now: datetime,
           distance_m: Optional[float] = None,
           with_claims_count: bool = False) -> EnrichedListing:
    """Attach the read-time fields; never persisted."""
    extra = {
        "time_remaining": time_remaining(listing, now),
        "urgency_level": urgency_level(listing, now),
        "is_available": is_available(listing, now),
    }
    if distance_m is not None:
        extra["distance"] = distance_m
        extra["distance_in_miles"] = round(distance_m / METERS_PER_MILE, 1)
    if with_claims_count:
        extra["claims_count"] = len(listing.claims)
    return EnrichedListing(**listing.model_dump(), **extra)
