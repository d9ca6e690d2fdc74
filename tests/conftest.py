"""Shared test fixtures for SimplyAppoint API tests.

Uses an in-memory SQLite async engine so tests run without PostgreSQL.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, get_db
from app.main import app

# Importing the package registers every model with Base.metadata
from app.models import Appointment, AppointmentOrigin, AppointmentStatus


# Use aiosqlite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSession = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with TestSession() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def client():
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db():
    """Direct DB session for test setup/assertions."""
    async with TestSession() as session:
        yield session


@pytest.fixture
def booking_day() -> date:
    """A Monday 3-9 days out: past the default one-day notice, inside the 60-day horizon."""
    day = datetime.now(timezone.utc).date() + timedelta(days=3)
    while day.isoweekday() != 1:
        day += timedelta(days=1)
    return day


@pytest_asyncio.fixture
async def business(client):
    """UTC business with the default Mon-Fri 09:00-17:00 schedule and a 60-minute service."""
    resp = await client.post("/api/v1/businesses/", json={
        "name": "Studio Nine",
        "owner_user_id": "owner-1",
        "timezone": "UTC",
    })
    assert resp.status_code == 201
    biz = resp.json()

    resp = await client.post(f"/api/v1/businesses/{biz['id']}/services", json={
        "name": "Haircut",
        "duration_minutes": 60,
        "price": "40.00",
    })
    assert resp.status_code == 201
    service = resp.json()

    return {
        "business_id": biz["id"],
        "service_id": service["id"],
    }


@pytest_asyncio.fixture
async def add_appointment(db):
    """Insert an appointment row directly, bypassing booking rules (e.g. in the past)."""

    async def _add(
        business_id: str,
        service_id: str,
        start_utc: datetime,
        minutes: int = 60,
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
        origin: AppointmentOrigin = AppointmentOrigin.OWNER,
        price: str = "40.00",
        customer_name: str = "Jane Doe",
    ) -> Appointment:
        appointment = Appointment(
            business_id=uuid.UUID(business_id),
            service_id=uuid.UUID(service_id),
            customer_name=customer_name,
            customer_email="jane@example.com",
            start_utc=start_utc,
            end_utc=start_utc + timedelta(minutes=minutes),
            duration_minutes=minutes,
            price=Decimal(price),
            status=status,
            origin=origin,
        )
        db.add(appointment)
        await db.commit()
        return appointment

    return _add
