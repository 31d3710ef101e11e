# tests/conftest.py
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from helpers import FakeGateway
from renthubber.adapters.clients.http_resilience import reset_circuits
from renthubber.domain.types import CancellationPolicy, ListingStatus, PriceUnit
from renthubber.models import Base
from renthubber.services.listings import create_listing
from renthubber.services.users import create_user


@pytest.fixture(autouse=True)
async def _reset_db(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    reset_circuits()
    yield


@pytest.fixture
async def engine():
    """
    Fresh in-memory DB per test. StaticPool makes all connections share the same
    in-memory database for the lifetime of this engine fixture.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def async_session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=True)


@pytest.fixture
async def session(async_session_maker):
    async with async_session_maker() as s:
        yield s


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
async def hubber(session):
    u = await create_user(session, name="Giulia", email="giulia@example.com")
    await session.commit()
    return u


@pytest.fixture
async def renter(session):
    u = await create_user(session, name="Marco", email="marco@example.com")
    await session.commit()
    return u


@pytest.fixture
async def listing(session, hubber):
    """50 EUR/day, no cleaning fee, flexible policy, published."""
    lst = await create_listing(
        session,
        owner_id=hubber.id,
        title="Trapano Bosch",
        price_cents=5000,
        price_unit=PriceUnit.day,
        cancellation_policy=CancellationPolicy.flexible,
        location="Via Roma 1, Milano",
        city="Milano",
        status=ListingStatus.published,
    )
    await session.commit()
    return lst
