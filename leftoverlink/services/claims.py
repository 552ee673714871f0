# leftoverlink/services/claims.py
import logging
from datetime import datetime
from typing import Optional

from leftoverlink.core.guards import ClaimGuard, ReviewGuard
from leftoverlink.repos.base import ListingStore
from leftoverlink.schemas import Claim, ClaimStatus, Listing

logger = logging.getLogger(__name__)


class ClaimCoordinator:
    """
    Claim submission and review.

    Eligibility is checked up front so callers get the precise failure, then
    the same guard is handed to the store, which re-applies it inside the
    atomic write. Claims are interest signals; nothing is reserved or
    decremented when one is recorded.
    """

    def __init__(self, store: ListingStore):
        self.store = store

    async def claim(self, listing_id: str, user_id: str, message: Optional[str], now: datetime) -> Listing:
        guard = ClaimGuard(user_id=user_id, now=now)
        listing = await self.store.get(listing_id)
        err = guard.violation(listing)
        if err is not None:
            logger.info("claim on %s by %s refused: %s", listing_id, user_id, err.kind)
            raise err

        claim = Claim(user_id=user_id, message=message or "", status=ClaimStatus.PENDING, claimed_at=now)
        updated = await self.store.append_claim_atomic(listing_id, claim, guard)
        logger.info("claim on %s by %s recorded", listing_id, user_id)
        return updated

    async def review(self, listing_id: str, owner_id: str, claimant_id: str, to_status: str,
                     now: datetime) -> Listing:
        guard = ReviewGuard(owner_id=owner_id, claimant_id=claimant_id, to_status=to_status, now=now)
        listing = await self.store.get(listing_id)
        err = guard.violation(listing)
        if err is not None:
            raise err
        updated = await self.store.review_claim_atomic(listing_id, guard)
        logger.info("claim on %s by %s marked %s", listing_id, claimant_id, to_status)
        return updated
