from datetime import timedelta

import pytest
from pydantic import ValidationError

from conftest import CENTER, T0, make_listing, north_of
from leftoverlink.repos.base import ListingFilter
from leftoverlink.schemas import ListingQuery
from leftoverlink.services.search import SearchRanker

pytestmark = pytest.mark.anyio

LNG, LAT = CENTER


def query(**kw) -> ListingQuery:
    kw.setdefault("lat", LAT)
    kw.setdefault("lng", LNG)
    return ListingQuery(**kw)


@pytest.fixture
def ranker(store):
    return SearchRanker(store)


async def add(store, km: float = 0.0, **kw):
    return await store.create(make_listing(lat=north_of(LAT, km), **kw))


async def test_equal_expiry_sorted_by_distance(store, ranker):
    far = await add(store, 3, title="far one")
    near = await add(store, 1, title="near one")
    page = await ranker.search(query(radius_km=5), T0)
    assert [i.id for i in page.items] == [near.id, far.id]
    assert page.items[0].distance == pytest.approx(1000, rel=1e-6)
    assert page.items[0].distance_in_miles == 0.6


async def test_distance_dominates_expiry(store, ranker):
    near_late = await add(store, 1, expires_in=timedelta(hours=8))
    far_soon = await add(store, 3, expires_in=timedelta(minutes=20))
    page = await ranker.search(query(radius_km=5), T0)
    assert [i.id for i in page.items] == [near_late.id, far_soon.id]


async def test_expiry_breaks_distance_ties(store, ranker):
    later = await add(store, 2, expires_in=timedelta(hours=6))
    sooner = await add(store, 2, expires_in=timedelta(hours=2))
    page = await ranker.search(query(radius_km=5), T0)
    assert [i.id for i in page.items] == [sooner.id, later.id]


async def test_only_claimable_listings_are_returned(store, ranker):
    ok = await add(store, 1)
    await add(store, 1, expires_in=timedelta(minutes=-1))
    await add(store, 1, status="claimed")
    await add(store, 1, status="completed")
    await add(store, 9)
    page = await ranker.search(query(radius_km=5), T0)
    assert [i.id for i in page.items] == [ok.id]


async def test_category_and_text_filters(store, ranker):
    bread = await add(store, 1)
    apples = await add(store, 1, title="Crate of apples", description="Slightly bruised",
                       category="produce", donor_name="Green Grocer")
    page = await ranker.search(query(category="produce"), T0)
    assert [i.id for i in page.items] == [apples.id]

    page = await ranker.search(query(search="GROCER"), T0)
    assert [i.id for i in page.items] == [apples.id]

    page = await ranker.search(query(search="sourdough"), T0)
    assert [i.id for i in page.items] == [bread.id]

    page = await ranker.search(query(search="a.c"), T0)
    assert page.items == []


async def test_without_center_newest_first(store, ranker):
    old = await store.create(make_listing(created_at=T0 - timedelta(hours=2)))
    new = await store.create(make_listing(created_at=T0 - timedelta(minutes=5), lat=10.0, lng=10.0))
    page = await ranker.search(ListingQuery(), T0)
    assert [i.id for i in page.items] == [new.id, old.id]
    assert all(i.distance is None for i in page.items)


async def test_lone_coordinate_searches_without_center(store, ranker):
    old = await store.create(make_listing(created_at=T0 - timedelta(hours=2)))
    new = await store.create(make_listing(created_at=T0 - timedelta(minutes=5), lat=10.0, lng=10.0))
    for q in (ListingQuery(lat=LAT), ListingQuery(lng=LNG)):
        page = await ranker.search(q, T0)
        assert [i.id for i in page.items] == [new.id, old.id]


async def test_pagination_is_offset_based(store, ranker):
    ids = [(await add(store, km)).id for km in (0.5, 1, 1.5, 2, 2.5)]
    first = await ranker.search(query(page=1, page_size=2), T0)
    second = await ranker.search(query(page=2, page_size=2), T0)
    third = await ranker.search(query(page=3, page_size=2), T0)
    assert [i.id for i in first.items + second.items + third.items] == ids
    assert len(third.items) == 1


async def test_radius_growth_is_monotonic(store, ranker):
    for km in (0.05, 0.8, 2, 7, 30, 80):
        await add(store, km)
    seen = set()
    for radius in (0.1, 1, 5, 10, 50, 100):
        found = {i.id for i in (await ranker.search(query(radius_km=radius, page_size=100), T0)).items}
        assert seen <= found
        seen = found
    assert len(seen) == 6


async def test_results_are_enriched(store, ranker):
    await add(store, 1, category="produce", expires_in=timedelta(minutes=30))
    (item,) = (await ranker.search(query(radius_km=5), T0)).items
    assert item.urgency_level == "urgent"
    assert item.time_remaining == "30m remaining"
    assert item.is_available is True


def test_query_bounds():
    assert ListingQuery(lat=LAT).has_center is False
    assert ListingQuery(lng=LNG).has_center is False
    with pytest.raises(ValidationError):
        ListingQuery(radius_km=0.05)
    with pytest.raises(ValidationError):
        ListingQuery(page_size=101)
    with pytest.raises(ValidationError):
        ListingQuery(page=0)
    assert ListingQuery(page=3, page_size=20).skip == 40


def test_filter_renders_escaped_text_for_mongo():
    flt = ListingFilter(available_at=T0, category="produce", text="a.c*").to_mongo()
    assert flt["status"] == "available"
    assert flt["expiry_time"] == {"$gt": T0}
    assert flt["category"] == "produce"
    rx = {"$regex": r"a\.c\*", "$options": "i"}
    assert flt["$or"] == [{"title": rx}, {"description": rx}, {"donor_name": rx}]
