"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from brokerage.app.main import app
from brokerage.app.db.session import get_db, Base
from brokerage.app.core.config import settings
from brokerage.app.core.dependencies import get_pricing_engine
from brokerage.app.core.exceptions import GeocodeError, RouteError
from brokerage.app.core.jwt import create_access_token
from brokerage.app.domain.billing.commission import CommissionPolicy
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.lifecycle.request_lifecycle import RequestLifecycle
from brokerage.app.domain.offers.offer_book import OfferBook
from brokerage.app.domain.arbitration.arbitration_service import ArbitrationService
from brokerage.app.domain.pricing.pricing_engine import GeoPoint, PackageDimensions, PricingEngine
import brokerage.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

CLIENT_ID = 10
OTHER_CLIENT_ID = 11
PARTNER_ID = 20
OTHER_PARTNER_ID = 21
ADMIN_ID = 1

LISBON = "Rua Augusta 100, Lisboa"
PORTO = "Avenida dos Aliados 10, Porto"
PARIS = "Rue de Rivoli 50, Paris"
ZURICH = "Bahnhofstrasse 1, Zurich"
MADRID = "Gran Via 1, Madrid"

KNOWN_ADDRESSES = {
    LISBON: GeoPoint(latitude=38.7103, longitude=-9.1366, country_code="PT"),
    PORTO: GeoPoint(latitude=41.1469, longitude=-8.6110, country_code="PT"),
    PARIS: GeoPoint(latitude=48.8606, longitude=2.3376, country_code="FR"),
    ZURICH: GeoPoint(latitude=47.3769, longitude=8.5417, country_code="CH"),
    MADRID: GeoPoint(latitude=40.4203, longitude=-3.7058, country_code="ES"),
}

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.ttls = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


class FakeGeocoder:
    """In-memory geocoder over KNOWN_ADDRESSES."""

    def __init__(self, addresses=None):
        self.addresses = dict(addresses or KNOWN_ADDRESSES)
        self.calls = []

    async def geocode(self, address):
        self.calls.append(address)
        point = self.addresses.get(address)
        if point is None:
            raise GeocodeError(address, "No match")
        return point


class FakeRouter:
    """Router answering a fixed distance, or failing when told to."""

    def __init__(self, meters=313_400.0):
        self.meters = meters
        self.fail = False

    async def distance_meters(self, origin, destination):
        if self.fail:
            raise RouteError("Router unavailable")
        return self.meters


@pytest.fixture
def redis_client_session():
    return MockRedis()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def router():
    return FakeRouter()


@pytest.fixture
def pricing_engine(geocoder, router):
    return PricingEngine(geocoder=geocoder, router=router)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


# Shared session for fixture data creation
@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def apply_overrides(session_factory, redis_client_session, pricing_engine):
    """Point the app at the test database, the mock cache and the fake geo collaborators."""
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pricing_engine] = lambda: pricing_engine
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture
async def client(apply_overrides):
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def auth_headers(user_id: int, role: str) -> dict:
    token = create_access_token({"sub": f"user{user_id}", "user_id": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client_headers():
    return auth_headers(CLIENT_ID, "CLIENT")


@pytest.fixture
def other_client_headers():
    return auth_headers(OTHER_CLIENT_ID, "CLIENT")


@pytest.fixture
def partner_headers():
    return auth_headers(PARTNER_ID, "PARTNER")


@pytest.fixture
def other_partner_headers():
    return auth_headers(OTHER_PARTNER_ID, "PARTNER")


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, "ADMIN")


# Domain services wired as the dependencies wire them

@pytest.fixture
def invoice_service():
    return InvoiceService(policy=CommissionPolicy(mode="percentage", value=10), trigger="accepted")


@pytest.fixture
def offer_book():
    return OfferBook()


@pytest.fixture
def arbitration_service(offer_book, invoice_service):
    return ArbitrationService(offer_book=offer_book, invoice_service=invoice_service)


@pytest.fixture
def make_request(db_session, pricing_engine):
    """Factory creating a committed pending request through the lifecycle."""

    async def _make(
        pickup=LISBON,
        destination=PORTO,
        weight_kg=100.0,
        dims=PackageDimensions(height_cm=100, width_cm=100, depth_cm=100),
        client_id=CLIENT_ID,
    ):
        estimate = await pricing_engine.estimate(pickup, destination, dims, weight_kg)
        request = await RequestLifecycle.create(
            db_session,
            client_id=client_id,
            pickup_address=pickup,
            destination_address=destination,
            dims=dims,
            weight_kg=weight_kg,
            estimate=estimate,
        )
        await db_session.commit()
        return request

    return _make


@pytest.fixture
def make_offer(db_session, offer_book):
    """Factory creating a committed pending offer."""

    async def _make(request_id, price=150.0, partner_id=PARTNER_ID):
        offer = await offer_book.submit_offer(db_session, request_id, partner_id, price)
        await db_session.commit()
        return offer

    return _make


@pytest.fixture(autouse=True)
def reset_settings():
    """Restore business settings mutated by a test."""
    snapshot = settings.model_dump()
    yield
    for key, value in snapshot.items():
        setattr(settings, key, value)
