import os
from datetime import date, time, timedelta
from typing import Any, Optional

# Point the app at SQLite before anything imports app.core.database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.deps.services import get_preferences_store
from app.core.database import Base, get_db
from app.main import app
from app.models.appointment import Appointment, AppointmentStatus
from app.schemas.scheduling import BusinessHours
from app.services.holidays import HolidayService
from app.services.preferences import PreferencesStore
from app.services.wash_type import WashTypeService

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def find_open_days(count: int = 1, days_ahead: int = 7) -> list[date]:
    """Future days on which the car wash is open with the configured hours."""
    hours = BusinessHours.from_settings()
    day = date.today() + timedelta(days=days_ahead)
    found = []
    while len(found) < count:
        if day.weekday() not in hours.closed_weekdays and not HolidayService.is_holiday(
            day, hours.holiday_country
        ):
            found.append(day)
        day += timedelta(days=1)
    return found


@pytest.fixture
def open_day() -> date:
    return find_open_days(1)[0]


@pytest.fixture
def open_days() -> list[date]:
    return find_open_days(3)


@pytest.fixture
async def db():
    """Create a fresh in-memory database session for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def wash_types(db: AsyncSession):
    """The default wash-type catalog, stored."""
    await WashTypeService.seed_default_wash_types(db)
    return await WashTypeService.get_wash_types(db)


@pytest.fixture
def make_appointment(db: AsyncSession, wash_types):
    """Insert an appointment row directly, bypassing the service checks."""

    async def _make(
        day: date,
        at: str = "10:00",
        status: AppointmentStatus = AppointmentStatus.PENDING,
        **overrides: Any,
    ) -> Appointment:
        hour, minute = (int(part) for part in at.split(":"))
        fields = dict(
            client_name="Ana García",
            phone="600 123 456",
            email="ana@example.com",
            wash_type_id=wash_types[0].id,
            vehicle_model="Seat Ibiza",
            status=status.value,
            reminder_sent=False,
        )
        fields.update(overrides)
        appointment = Appointment(date=day, time=time(hour, minute), **fields)
        db.add(appointment)
        await db.commit()
        await db.refresh(appointment)
        return appointment

    return _make


class InMemoryKV:
    """Dict-backed stand-in for the Redis client used by PreferencesStore."""

    def __init__(self, fail_writes: bool = False):
        self.data: dict[str, Any] = {}
        self.fail_writes = fail_writes

    async def get(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    async def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        if self.fail_writes:
            return False
        self.data[key] = value
        return True


@pytest.fixture
def memory_kv() -> InMemoryKV:
    return InMemoryKV()


@pytest.fixture
async def api_client(db: AsyncSession, memory_kv: InMemoryKV):
    """HTTP client against the app, wired to the test database."""

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_preferences_store] = lambda: PreferencesStore(
        kv=memory_kv, key="test:preferences"
    )

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
