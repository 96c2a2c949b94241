from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps.errors import to_http_exception
from app.api.deps.services import get_appointment_service
from app.core.exceptions import SchedulingError
from app.schemas.appointment import (
    Appointment,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentDayGroup,
    AppointmentFilters,
    AppointmentList,
    AppointmentSearch,
    AppointmentStats,
    AppointmentStatus,
    AppointmentStatusTransition,
    AppointmentUpdate,
)
from app.services.appointment import AppointmentService
from app.utils.dates import parse_date

router = APIRouter()


def _filters(
    date: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    status: Optional[AppointmentStatus] = None,
    phone: Optional[str] = None,
    wash_type_id: Optional[int] = None,
) -> AppointmentFilters:
    return AppointmentFilters(
        date=parse_date(date) if date else None,
        start_date=parse_date(start_date) if start_date else None,
        end_date=parse_date(end_date) if end_date else None,
        status=status,
        phone=phone,
        wash_type_id=wash_type_id,
    )


@router.post("/", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_data: AppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Create new appointment with validation and conflict checking."""
    try:
        return await service.create_appointment(appointment_data)
    except (SchedulingError, ValueError) as e:
        raise to_http_exception(e)


@router.get("/", response_model=AppointmentList)
async def get_appointments(
    service: AppointmentService = Depends(get_appointment_service),
    # Search parameters
    query: Optional[str] = Query(
        None, description="Search in client name, phone, email or vehicle"
    ),
    # Filter parameters
    date: Optional[str] = Query(None, description="YYYY-MM-DD or DD/MM/YYYY"),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    phone: Optional[str] = Query(None),
    wash_type_id: Optional[int] = Query(None),
    # Pagination parameters
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_order: str = Query("asc", pattern=r"^(asc|desc)$"),
):
    """Get appointments with filtering, search, and pagination."""
    try:
        filters = _filters(date, start_date, end_date, status, phone, wash_type_id)
    except ValueError as e:
        raise to_http_exception(e)

    search = AppointmentSearch(
        query=query,
        filters=filters,
        page=page,
        page_size=page_size,
        sort_order=sort_order,
    )

    appointments, total_count = await service.get_appointments(search)

    total_pages = (total_count + page_size - 1) // page_size

    return AppointmentList(
        appointments=appointments,
        total_count=total_count,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


@router.get("/grouped", response_model=List[AppointmentDayGroup])
async def get_appointments_grouped(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments bucketed per day, newest day first."""
    try:
        filters = _filters(None, start_date, end_date, status)
    except ValueError as e:
        raise to_http_exception(e)

    return await service.get_appointments_grouped_by_date(filters)


@router.get("/stats", response_model=AppointmentStats)
async def get_appointment_stats(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Get appointment statistics."""
    try:
        filters = _filters(None, start_date, end_date)
    except ValueError as e:
        raise to_http_exception(e)

    return await service.get_appointment_stats(filters.start_date, filters.end_date)


@router.get("/upcoming", response_model=List[Appointment])
async def get_upcoming_appointments(
    days: int = Query(7, ge=0, le=365, description="How many days ahead to look"),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Active appointments from today on."""
    return await service.get_upcoming_appointments(days)


@router.get("/phone/{phone}", response_model=List[Appointment])
async def get_appointments_by_phone(
    phone: str,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Every appointment booked with this phone number, newest first."""
    return await service.get_appointments_by_phone(phone)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Get appointment by id."""
    try:
        return await service.get_appointment(appointment_id)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.put("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: int,
    update_data: AppointmentUpdate,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Replace an appointment's details; the record is validated again."""
    try:
        return await service.update_appointment(appointment_id, update_data)
    except (SchedulingError, ValueError) as e:
        raise to_http_exception(e)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_appointment(
    appointment_id: int,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Delete an appointment and free its slot."""
    try:
        await service.delete_appointment(appointment_id)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.post("/{appointment_id}/status", response_model=Appointment)
async def transition_appointment_status(
    appointment_id: int,
    transition: AppointmentStatusTransition,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Transition appointment status (pending, confirmed, completed, cancelled)."""
    try:
        return await service.transition_appointment_status(appointment_id, transition)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.post("/{appointment_id}/cancel", response_model=Appointment)
async def cancel_appointment(
    appointment_id: int,
    cancel_data: Optional[AppointmentCancel] = None,
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment with an optional reason."""
    reason = cancel_data.reason if cancel_data else None
    try:
        return await service.cancel_appointment(appointment_id, reason)
    except SchedulingError as e:
        raise to_http_exception(e)
