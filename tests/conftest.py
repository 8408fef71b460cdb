"""
Pytest fixtures for test database, client, and authentication.

Settings are read once (lru_cache), so the test environment is exported
before anything from doujindesk is imported. TEST_DATABASE_URL defaults to
an in-memory SQLite database; point it at PostgreSQL to run the suite against
the production dialect.
"""

import os

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["ENVIRONMENT"] = "test"
os.environ["REDIS_ENABLED"] = "false"

from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from doujindesk.main import app
from doujindesk.db.base import Base, utcnow
from doujindesk.db.session import get_db
from doujindesk.core.security import create_access_token, hash_password
from doujindesk.models import User, TicketType, TicketPurchase
from doujindesk.services.catalog_service import seed_ticket_types
from doujindesk.services.ids import make_id
from doujindesk.services.qr_codec import generate_rfid_code


def _engine_kwargs() -> dict:
    if TEST_DATABASE_URL.startswith("sqlite") and ":memory:" in TEST_DATABASE_URL:
        # One shared connection, otherwise every checkout sees an empty database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs())
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add_user(db_session: AsyncSession, email: str, username: str, role: str) -> User:
    user = User(
        email=email,
        username=username,
        hashed_password=hash_password("testpassword123"),
        role=role,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "admin@example.com", "admin", "admin")


@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await _add_user(db_session, "gate@example.com", "gatestaff", "staff")


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict:
    token = create_access_token(data={"sub": str(admin_user.id), "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def staff_headers(staff_user: User) -> dict:
    token = create_access_token(data={"sub": str(staff_user.id), "role": "staff"})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def ticket_types(db_session: AsyncSession) -> dict[str, TicketType]:
    """The default catalog: weekend-pass, saturday-only, sunday-only, vip-pass."""
    await seed_ticket_types(db_session)
    await db_session.commit()
    result = await db_session.execute(select(TicketType))
    return {t.id: t for t in result.scalars().all()}


@pytest_asyncio.fixture
async def small_ticket_type(db_session: AsyncSession) -> TicketType:
    """A ticket type with only 3 tickets left."""
    ticket_type = TicketType(
        id="afterparty",
        name="Afterparty",
        description="Limited",
        price_idr=50000,
        price_usd=4,
        category="special",
        benefits=[],
        max_quantity=3,
        available_quantity=3,
        is_active=True,
        requires_id=False,
    )
    db_session.add(ticket_type)
    await db_session.commit()
    await db_session.refresh(ticket_type)
    return ticket_type


@pytest.fixture
def make_purchase(db_session: AsyncSession):
    """
    Insert a purchase row directly, bypassing checkout, so tests can set up
    states checkout never produces (unpaid, expired, not yet valid).
    """

    async def _make(ticket_type_id: str = "weekend-pass", **overrides) -> TicketPurchase:
        now = utcnow()
        purchase_id = overrides.pop("id", make_id("ticket"))
        values = dict(
            id=purchase_id,
            ticket_type_id=ticket_type_id,
            attendee_name="Rina Ayu",
            attendee_email="rina@example.com",
            attendee_phone="+62811111111",
            quantity=1,
            total_price_idr=150000,
            total_price_usd=10,
            currency="IDR",
            payment_status="paid",
            payment_method="credit_card",
            qr_code=f"QR-{purchase_id}",
            rfid_code=generate_rfid_code(),
            purchase_date=now,
            valid_from=now - timedelta(hours=1),
            valid_until=now + timedelta(days=7),
            is_used=False,
            special_access=[],
        )
        values.update(overrides)
        purchase = TicketPurchase(**values)
        db_session.add(purchase)
        await db_session.commit()
        await db_session.refresh(purchase)
        return purchase

    return _make
