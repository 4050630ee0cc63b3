"""Pytest configuration and fixtures for the QuickBite API test suite.

Provides:
- A throwaway SQLite database per test (schema from the models)
- Mock authentication (JWT bypass) for a customer and an admin
- Fresh in-memory token buckets per test, slowapi limits disabled
- Mock Redis (fakeredis)
- Model factory fixtures for the catalog, Profile, Admin and Order
"""

from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime
from pathlib import Path
from typing import Any

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.auth import get_current_user
from app.core.deps import get_db
from app.core.rate_limit import MemoryBucketStore, limiter, set_bucket_store
from app.main import app
from app.models.base import Base, utcnow
from app.models.catalog import Location, MenuItem, ServiceableCity
from app.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from app.models.profile import Admin, Profile

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
TEST_USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
ADMIN_USER_ID = "33333333-3333-3333-3333-333333333333"

TEST_CITY = "Badlapur"
TEST_LOCATION_ID = "loc1"
TEST_OTP = "123456"

# ---------------------------------------------------------------------------
# Disable slowapi read limits globally for tests (token buckets stay on)
# ---------------------------------------------------------------------------
limiter.enabled = False


@pytest.fixture(autouse=True)
def bucket_store() -> Generator[MemoryBucketStore, None, None]:
    """Every test starts with empty token buckets."""
    store = MemoryBucketStore()
    set_bucket_store(store)
    yield store
    set_bucket_store(None)


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory bound to a fresh SQLite file.

    Uses NullPool so the test session and the request sessions each get
    their own connection, like they would against Postgres.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session for test setup (factory fixtures) and assertions."""
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Fake Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Provide a fresh fakeredis instance per test."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


# ---------------------------------------------------------------------------
# Auth mock
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_user() -> dict[str, Any]:
    """Return the default authenticated test user payload (mimics decoded JWT)."""
    return {"sub": TEST_USER_ID, "email": "customer@example.com", "aud": "authenticated"}


@pytest.fixture
def admin_user() -> dict[str, Any]:
    return {"sub": ADMIN_USER_ID, "email": "admin@example.com", "aud": "authenticated"}


def _build_client(
    session_factory: async_sessionmaker[AsyncSession],
    user: dict[str, Any] | None,
) -> AsyncClient:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_db] = _override_session

    if user is not None:

        async def _override_user() -> dict[str, Any]:
            return user

        app.dependency_overrides[get_current_user] = _override_user

    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    auth_user: dict[str, Any],
) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as the test customer."""
    async with _build_client(session_factory, auth_user) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(
    session_factory: async_sessionmaker[AsyncSession],
    admin_user: dict[str, Any],
    admin: Admin,  # noqa: ARG001  # Ensures the admins row exists
) -> AsyncGenerator[AsyncClient, None]:
    """Client authenticated as a user listed in ``admins``."""
    async with _build_client(session_factory, admin_user) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def unauthed_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """Client with the DB overridden but auth NOT bypassed."""
    async with _build_client(session_factory, None) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def plain_client() -> AsyncGenerator[AsyncClient, None]:
    """Minimal async test client with NO dependency overrides."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Model Factories
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> dict[str, MenuItem]:
    """One serviceable city, location ``loc1`` and three dishes (one unavailable)."""
    db_session.add(ServiceableCity(name=TEST_CITY))
    db_session.add(
        Location(id=TEST_LOCATION_ID, name="Rameshwaram Dosa Center", address="123 Main Street")
    )
    items = {
        "dosa": MenuItem(
            id=1, location_id=TEST_LOCATION_ID, name="Masala Dosa", price=80, category="Dosa"
        ),
        "idli": MenuItem(
            id=2, location_id=TEST_LOCATION_ID, name="Idli Sambar", price=50, category="Breakfast"
        ),
        "coffee": MenuItem(
            id=3,
            location_id=TEST_LOCATION_ID,
            name="Filter Coffee",
            price=30,
            category="Beverages",
            is_available=False,
        ),
    }
    db_session.add_all(items.values())
    await db_session.commit()
    return items


@pytest.fixture
def profile_factory(db_session: AsyncSession) -> Callable[..., Any]:
    """Factory that creates Profile instances."""

    async def _create(
        *,
        user_id: str = TEST_USER_ID,
        name: str | None = "Asha Patil",
        city: str | None = TEST_CITY,
        loyalty_points: int = 0,
        referral_code: str | None = None,
        referred_by: str | None = None,
    ) -> Profile:
        profile = Profile(
            id=user_id,
            name=name,
            email=f"{user_id[:8]}@example.com",
            phone="9876543210",
            address="Flat 4, Shanti Nagar",
            city=city,
            pincode="421503",
            loyalty_points=loyalty_points,
            referral_code=referral_code,
            referred_by=referred_by,
        )
        db_session.add(profile)
        await db_session.commit()
        await db_session.refresh(profile)
        return profile

    return _create


@pytest_asyncio.fixture
async def profile(profile_factory: Callable[..., Any]) -> Profile:
    """The test customer's profile in a serviceable city with 100 points."""
    return await profile_factory(loyalty_points=100, referral_code="ASHA2024")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> Admin:
    row = Admin(id=ADMIN_USER_ID, role="admin")
    db_session.add(row)
    await db_session.commit()
    return row


@pytest.fixture
def order_factory(
    db_session: AsyncSession,
    catalog: dict[str, MenuItem],
) -> Callable[..., Any]:
    """Factory that creates Order instances with one line of Masala Dosa x2."""

    async def _create(
        *,
        user_id: str = TEST_USER_ID,
        status: OrderStatus = OrderStatus.CONFIRMED,
        payment_method: PaymentMethod = PaymentMethod.COD,
        points_used: int = 0,
        created_at: datetime | None = None,
        otp: str = TEST_OTP,
        quantity: int = 2,
    ) -> Order:
        dosa = catalog["dosa"]
        subtotal = dosa.price * quantity
        discount = points_used // 2
        created = created_at or utcnow()
        order = Order(
            user_id=user_id,
            location_id=TEST_LOCATION_ID,
            subtotal=subtotal,
            delivery_charge=20,
            discount=discount,
            total_amount=subtotal + 20 - discount,
            status=status,
            payment_method=payment_method,
            otp=otp,
            points_used=points_used,
            created_at=created,
            updated_at=created,
            items=[OrderItem(menu_item_id=dosa.id, quantity=quantity, price=dosa.price)],
        )
        db_session.add(order)
        await db_session.flush()
        order.order_number = 1000 + order.id
        await db_session.commit()
        await db_session.refresh(order)
        return order

    return _create
