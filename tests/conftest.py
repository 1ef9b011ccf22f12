"""
Shared test fixtures: in-memory SQLite, a dict-backed Redis and a stub
place-search lookup.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import fleetdesk.models  # noqa: F401  (registers every table on Base.metadata)
from fleetdesk.database import Base, get_db
from fleetdesk.dependencies import get_place_lookup
from fleetdesk.main import app
from fleetdesk.middleware.auth import create_access_token
from fleetdesk.models import Consignment, Driver, Trip, Vehicle
from fleetdesk.redis_client import get_redis
from fleetdesk.services.geo import Coordinate

PICKUP = "Mumbai Port Trust, Mumbai"
DROP = "Chakan MIDC, Pune"

PLACES = {
    PICKUP: Coordinate(18.9388, 72.8354),
    DROP: Coordinate(18.7606, 73.8636),
}


class MockRedis:
    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, nx=False, ex=None, px=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def eval(self, script, numkeys, *args):
        # Only the compare-and-delete lock release script is used
        key, owner = args[0], args[1]
        if self.store.get(key) == owner:
            del self.store[key]
            return 1
        return 0

    async def aclose(self):
        return None


class StubPlaces:
    def __init__(self, places: dict[str, Coordinate] | None = None):
        self.places = PLACES if places is None else places
        self.queries: list[str] = []

    async def lookup_place(self, query: str) -> Coordinate | None:
        self.queries.append(query)
        return self.places.get(query)


def token_for(user_id: str, role: str) -> dict:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def redis():
    return MockRedis()


@pytest.fixture
def places():
    return StubPlaces()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def seeded(session_factory) -> dict:
    """One driver on an ongoing MCV trip carrying 2000 kg."""
    async with session_factory() as db:
        driver = Driver(name="Ravi Kumar", phone="9800000001", status="On Trip")
        vehicle = Vehicle(license_plate_no="MH12AB1234", type="MCV", model="Tata 1512", status="on_duty")
        consignment = Consignment(
            code="CNS-0001",
            type="priority",
            vehicle_type="MCV",
            status="ongoing",
            weight="2000",
            pickup_location=PICKUP,
            drop_location=DROP,
        )
        db.add_all([driver, vehicle, consignment])
        await db.flush()
        trip = Trip(
            consignment_id=consignment.id,
            driver_id=driver.id,
            vehicle_id=vehicle.id,
            pickup_location=PICKUP,
            drop_location=DROP,
            status="ongoing",
        )
        db.add(trip)
        await db.commit()
        return {
            "driver_id": driver.id,
            "vehicle_id": vehicle.id,
            "consignment_id": consignment.id,
            "trip_id": trip.id,
        }


@pytest_asyncio.fixture
async def client(session_factory, redis, places):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_place_lookup] = lambda: places
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
