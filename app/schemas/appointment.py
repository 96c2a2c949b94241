import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

# Import enums from the model to avoid duplication
from app.models.appointment import AppointmentStatus


# Request schemas are deliberately loose: field rules live in the validator so
# that every problem is reported together.
class AppointmentCreate(BaseModel):
    client_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    date: Optional[str] = Field(None, description="YYYY-MM-DD or DD/MM/YYYY")
    time: Optional[str] = Field(None, description="HH:MM")
    wash_type_id: Optional[int] = None
    vehicle_model: Optional[str] = None
    license_plate: Optional[str] = None
    notes: Optional[str] = None


class AppointmentUpdate(AppointmentCreate):
    """Full-record update; validated exactly like a new appointment."""


class NormalizedAppointment(BaseModel):
    client_name: str
    phone: str
    email: str
    date: dt.date
    time: dt.time
    wash_type_id: int
    vehicle_model: str
    license_plate: Optional[str] = None
    notes: Optional[str] = None

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return value.strftime("%H:%M")


class AppointmentStatusTransition(BaseModel):
    new_status: AppointmentStatus
    notes: Optional[str] = None


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None


# Response schemas
class Appointment(BaseModel):
    id: int
    client_name: str
    phone: str
    email: str
    date: dt.date
    time: dt.time
    wash_type_id: int
    wash_type_name: Optional[str] = None
    vehicle_model: str
    license_plate: Optional[str] = None
    notes: Optional[str] = None
    client_id: Optional[int] = None

    status: AppointmentStatus
    previous_status: Optional[AppointmentStatus] = None
    status_changed_at: Optional[dt.datetime] = None
    reminder_sent: bool = False

    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    is_active: bool

    @field_serializer("time")
    def serialize_time(self, value: dt.time) -> str:
        return value.strftime("%H:%M")

    class Config:
        from_attributes = True


class AppointmentList(BaseModel):
    appointments: List[Appointment]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class AppointmentDayGroup(BaseModel):
    date: dt.date
    label: str
    appointments: List[Appointment]


# Filter and search schemas
class AppointmentFilters(BaseModel):
    date: Optional[dt.date] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    status: Optional[AppointmentStatus] = None
    phone: Optional[str] = None
    wash_type_id: Optional[int] = None


class AppointmentSearch(BaseModel):
    query: Optional[str] = None  # Search name, phone, email, vehicle
    filters: AppointmentFilters = Field(default_factory=AppointmentFilters)
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    sort_order: str = Field("asc", pattern=r"^(asc|desc)$")


# Summary and analytics schemas
class AppointmentStats(BaseModel):
    total_appointments: int
    pending_appointments: int
    confirmed_appointments: int
    completed_appointments: int
    cancelled_appointments: int
    total_revenue: Decimal
    total_revenue_display: str  # e.g. "1.234,50 €"
    cancellation_rate: float
