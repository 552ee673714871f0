# tests/conftest.py
import math
from datetime import datetime, timedelta, timezone

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from leftoverlink.core.jwt import create_access_token
from leftoverlink.deps import get_clock, get_store, get_user_directory
from leftoverlink.main import app
from leftoverlink.repos.inmemory import InMemoryListingStore, InMemoryUserDirectory
from leftoverlink.schemas import DonorProfile, Listing
from leftoverlink.services.geo import EARTH_RADIUS_M

T0 = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

# Manila-ish coordinates, (lng, lat)
CENTER = (120.9842, 14.5995)

M_PER_DEG_LAT = EARTH_RADIUS_M * math.pi / 180


def north_of(lat: float, km: float) -> float:
    """Latitude ``km`` due north; distances along a meridian are exact."""
    return lat + km * 1000 / M_PER_DEG_LAT


class FrozenClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_listing(donor_id: str = "donor-1", expires_in=timedelta(hours=5), now: datetime = T0,
                 lng: float = CENTER[0], lat: float = CENTER[1], **overrides) -> Listing:
    data = dict(
        donor_id=donor_id,
        donor_name="Bakery Co",
        title="Day-old bread",
        description="Two crates of sourdough",
        category="baked_goods",
        quantity="2 crates",
        location={"coordinates": [lng, lat], "address": "12 Rizal Ave"},
        expiry_time=now + expires_in,
        created_at=now,
        updated_at=now,
    )
    data.update(overrides)
    return Listing(**data)


def auth(user_id: str, role: str = "recipient") -> dict:
    tok = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture
def anyio_backend():
    # keep AnyIO on asyncio
    return "asyncio"


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store():
    return InMemoryListingStore()


@pytest.fixture
def directory():
    return InMemoryUserDirectory({
        "donor-1": DonorProfile(name="Ana", organization="Bakery Co", verified=True),
        "donor-2": DonorProfile(name="Ben"),
    })


@pytest.fixture
async def test_client(store, directory, clock):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_user_directory] = lambda: directory
    app.dependency_overrides[get_clock] = lambda: clock
    async with LifespanManager(app):
        transport = ASGITransport(app=app, raise_app_exceptions=True)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    app.dependency_overrides.clear()
