from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.scheduling import BusinessHours
from app.services.appointment import AppointmentService
from app.services.preferences import PreferencesStore
from app.services.scheduling import SchedulingEngineService


def get_business_hours() -> BusinessHours:
    """Business hours for the current request, read from settings."""
    return BusinessHours.from_settings()


async def get_scheduling_engine(
    db: AsyncSession = Depends(get_db),
    business_hours: BusinessHours = Depends(get_business_hours),
) -> SchedulingEngineService:
    return SchedulingEngineService(db, business_hours)


async def get_appointment_service(
    db: AsyncSession = Depends(get_db),
    scheduling_engine: SchedulingEngineService = Depends(get_scheduling_engine),
) -> AppointmentService:
    return AppointmentService(db, scheduling_engine)


def get_preferences_store() -> PreferencesStore:
    return PreferencesStore()
