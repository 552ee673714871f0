# leftoverlink/services/search.py
from datetime import datetime

from leftoverlink.repos.base import ListingFilter, ListingStore
from leftoverlink.schemas import ListingPage, ListingQuery
from leftoverlink.services.expiry import enrich
from leftoverlink.services.geo import km_to_m


class SearchRanker:
    """
    Ranked pages of claimable listings.

    With a center: nearest first, soonest expiry breaking distance ties.
    Without one: newest first. Only available, unexpired listings are returned.
    """

    def __init__(self, store: ListingStore):
        self.store = store

    @staticmethod
    def build_filter(query: ListingQuery, now: datetime) -> ListingFilter:
        return ListingFilter(
            available_at=now,
            category=query.category.value if query.category else None,
            text=(query.search or "").strip() or None,
        )

    async def search(self, query: ListingQuery, now: datetime) -> ListingPage:
        flt = self.build_filter(query, now)
        if query.has_center:
            rows = await self.store.near(
                query.lng, query.lat, km_to_m(query.radius_km), flt,
                skip=query.skip, limit=query.page_size,
            )
            items = [enrich(l, now, distance_m=d) for l, d in rows]
        else:
            rows = await self.store.find(flt, skip=query.skip, limit=query.page_size)
            items = [enrich(l, now) for l in rows]
        return ListingPage(items=items, page=query.page, page_size=query.page_size)
