from datetime import timedelta

import pytest

from conftest import T0, make_listing
from leftoverlink.core.errors import Conflict, Forbidden, InvalidState, NotFound
from leftoverlink.core.guards import ClaimGuard
from leftoverlink.repos.mongo import MongoListingStore, MongoUserDirectory
from leftoverlink.schemas import Claim

mongomock_motor = pytest.importorskip("mongomock_motor")

pytestmark = pytest.mark.anyio


@pytest.fixture
def db():
    return mongomock_motor.AsyncMongoMockClient(tz_aware=True)["leftoverlink_test"]


@pytest.fixture
def mstore(db):
    return MongoListingStore(db)


def _claim(user_id: str) -> Claim:
    return Claim(user_id=user_id, message="", status="pending", claimed_at=T0)


async def test_create_assigns_object_id_and_reads_back(mstore):
    saved = await mstore.create(make_listing())
    got = await mstore.get(saved.id)
    assert got.id == saved.id
    assert got.expiry_time == saved.expiry_time
    assert got.expiry_time.tzinfo is not None
    with pytest.raises(NotFound):
        await mstore.get("not-an-object-id")


async def test_second_claim_by_same_user_loses_inside_the_write(mstore):
    saved = await mstore.create(make_listing())
    guard = ClaimGuard(user_id="r-1", now=T0)

    first = await mstore.append_claim_atomic(saved.id, _claim("r-1"), guard)
    assert [c.user_id for c in first.claims] == ["r-1"]

    with pytest.raises(Conflict) as exc:
        await mstore.append_claim_atomic(saved.id, _claim("r-1"), guard)
    assert exc.value.message == "You have already claimed this listing"
    assert len((await mstore.get(saved.id)).claims) == 1


async def test_filter_miss_explains_own_and_expired_listing(mstore):
    saved = await mstore.create(make_listing(donor_id="donor-1"))
    with pytest.raises(InvalidState, match="own listing"):
        await mstore.append_claim_atomic(saved.id, _claim("donor-1"), ClaimGuard(user_id="donor-1", now=T0))

    late = T0 + timedelta(hours=3)
    with pytest.raises(InvalidState, match="no longer available"):
        await mstore.append_claim_atomic(saved.id, _claim("r-2"), ClaimGuard(user_id="r-2", now=late))


async def test_update_checks_owner_before_expiry(mstore):
    saved = await mstore.create(make_listing(donor_id="donor-1"))
    past = {"expiry_time": T0 - timedelta(hours=1)}
    with pytest.raises(Forbidden):
        await mstore.update_fields(saved.id, "donor-2", past, T0)
    with pytest.raises(NotFound):
        await mstore.update_fields("0" * 24, "donor-1", past, T0)

    updated = await mstore.update_fields(saved.id, "donor-1", {"title": "Day-old rolls"}, T0)
    assert updated.title == "Day-old rolls"
    assert updated.updated_at == T0


async def test_sweep_expires_only_due_available_listings(mstore):
    due = await mstore.create(make_listing(expires_in=timedelta(minutes=30)))
    fresh = await mstore.create(make_listing(expires_in=timedelta(hours=5)))
    done = await mstore.create(make_listing(expires_in=timedelta(minutes=30), status="completed"))

    assert await mstore.expire_due(T0 + timedelta(hours=1)) == 1
    assert (await mstore.get(due.id)).status == "expired"
    assert (await mstore.get(fresh.id)).status == "available"
    assert (await mstore.get(done.id)).status == "completed"


async def test_view_counts_and_persists_lapsed_expiry(mstore):
    saved = await mstore.create(make_listing(expires_in=timedelta(minutes=30)))
    viewed = await mstore.record_view(saved.id, T0 + timedelta(hours=1))
    assert viewed.views == 1
    assert viewed.status == "expired"
    assert (await mstore.get(saved.id)).status == "expired"


async def test_directory_counts_shared_listings(db):
    res = await db["users"].insert_one({"name": "Ana", "organization": "Bakery Co", "verified": True})
    users = MongoUserDirectory(db)
    uid = str(res.inserted_id)

    profile = await users.get_profile(uid)
    assert profile.display_name == "Bakery Co"
    await users.record_listing_shared(uid)
    doc = await db["users"].find_one({"_id": res.inserted_id})
    assert doc["stats"]["foodShared"] == 1
