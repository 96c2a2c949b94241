from datetime import date as date_type
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps.errors import to_http_exception
from app.api.deps.services import (
    get_appointment_service,
    get_business_hours,
    get_scheduling_engine,
)
from app.schemas.scheduling import (
    AvailableSlots,
    BusinessHours,
    CalendarMonth,
    NextAvailableSlot,
    OccupancyStats,
    SlotAvailability,
    UnavailableDays,
)
from app.services.appointment import AppointmentService
from app.services.scheduling import SchedulingEngineService
from app.utils.dates import parse_date, parse_time

router = APIRouter()


def _parse_day(value: str) -> date_type:
    try:
        return parse_date(value)
    except ValueError as e:
        raise to_http_exception(e)


@router.get("/slots", response_model=AvailableSlots)
async def get_available_slots(
    date: str = Query(..., description="YYYY-MM-DD or DD/MM/YYYY"),
    scheduling_service: SchedulingEngineService = Depends(get_scheduling_engine),
):
    """
    Free appointment slots for a day.

    A slot is free when no active appointment starts at it. Closed days
    (weekly closing day or public holiday) have no slots.
    """
    day = _parse_day(date)
    slots = await scheduling_service.get_available_slots(day)
    return AvailableSlots(
        date=day, is_open=scheduling_service.is_open(day), slots=slots
    )


@router.get("/availability", response_model=SlotAvailability)
async def check_slot_availability(
    date: str = Query(..., description="YYYY-MM-DD or DD/MM/YYYY"),
    time: str = Query(..., description="HH:MM"),
    scheduling_service: SchedulingEngineService = Depends(get_scheduling_engine),
):
    """Check a single slot.

    ``free`` only says no active appointment starts at that time. ``available``
    also requires an open day and a time on the slot grid, so an off-grid time
    or a Sunday is never available even when nobody booked it.
    """
    day = _parse_day(date)
    try:
        slot_time = parse_time(time)
    except ValueError as e:
        raise to_http_exception(e)

    free = await scheduling_service.is_slot_available(day, slot_time)
    available = await scheduling_service.is_slot_bookable(day, slot_time)
    return SlotAvailability(date=day, time=slot_time, free=free, available=available)


@router.get("/next-slot", response_model=NextAvailableSlot)
async def get_next_available_slot(
    date: str = Query(..., description="YYYY-MM-DD or DD/MM/YYYY"),
    after: str = Query("00:00", description="HH:MM; the slot must start later"),
    scheduling_service: SchedulingEngineService = Depends(get_scheduling_engine),
):
    """First free slot of the day after the given time."""
    day = _parse_day(date)
    try:
        after_time = parse_time(after)
    except ValueError as e:
        raise to_http_exception(e)

    next_slot = await scheduling_service.next_available_slot(day, after_time)
    return NextAvailableSlot(date=day, after=after_time, next_slot=next_slot)


@router.get("/unavailable-days", response_model=UnavailableDays)
async def get_unavailable_days(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    scheduling_service: SchedulingEngineService = Depends(get_scheduling_engine),
):
    """Days of the month that cannot take a booking: past, closed or full."""
    days = await scheduling_service.get_unavailable_days(year, month)
    return UnavailableDays(year=year, month=month, unavailable_days=days)


@router.get("/occupancy", response_model=OccupancyStats)
async def get_occupancy(
    date: Optional[str] = Query(None, description="Defaults to today"),
    scheduling_service: SchedulingEngineService = Depends(get_scheduling_engine),
):
    """Slot occupancy for a day."""
    day = _parse_day(date) if date else date_type.today()
    return await scheduling_service.get_occupancy(day)


@router.get("/business-hours", response_model=BusinessHours)
async def get_business_hours_config(
    business_hours: BusinessHours = Depends(get_business_hours),
):
    """Opening hours, slot length and closing days in effect."""
    return business_hours


@router.get("/calendar", response_model=CalendarMonth)
async def get_calendar_month(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Month grid (6 weeks, Sunday first) with each day's appointments."""
    return await service.get_calendar_month(year, month)
