import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base
from app.core.exceptions import IllegalTransitionError


class AppointmentStatus(enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),  # Final state
    AppointmentStatus.CANCELLED: frozenset(),  # Final state
}


class Appointment(Base):
    """Car-wash appointment occupying one (date, time) slot."""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Customer contact
    client_name = Column(String(200), nullable=False)
    phone = Column(String(30), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True, index=True)

    # Slot
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)

    # Service details
    wash_type_id = Column(Integer, ForeignKey("wash_types.id"), nullable=False)
    vehicle_model = Column(String(150), nullable=False)
    license_plate = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)

    # Status management
    status = Column(
        String(20),
        nullable=False,
        default=AppointmentStatus.PENDING.value,
        index=True,
    )
    previous_status = Column(String(20), nullable=True)
    status_changed_at = Column(DateTime(timezone=True), nullable=True)

    # Reminders
    reminder_sent = Column(Boolean, default=False, nullable=False)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # One active appointment per slot; cancelled rows release it
    __table_args__ = (
        Index(
            "uq_appointments_active_slot",
            "date",
            "time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    wash_type = relationship("WashType", lazy="joined")
    client = relationship("Client", back_populates="appointments")

    def can_transition_to(self, new_status: AppointmentStatus) -> bool:
        """Check if appointment can transition to the new status."""
        current = AppointmentStatus(self.status)
        return new_status in ALLOWED_TRANSITIONS[current]

    def transition_to(
        self, new_status: AppointmentStatus, notes: Optional[str] = None
    ) -> "Appointment":
        """Move to ``new_status`` or raise IllegalTransitionError."""
        if not self.can_transition_to(new_status):
            raise IllegalTransitionError(self.status, new_status.value)

        self.previous_status = self.status
        self.status = new_status.value
        self.status_changed_at = datetime.now(timezone.utc)

        if notes:
            self.append_note(notes)

        return self

    def append_note(self, note: str) -> None:
        self.notes = f"{self.notes}\n{note}" if self.notes else note

    @property
    def is_active(self) -> bool:
        """Active appointments hold their slot."""
        return self.status != AppointmentStatus.CANCELLED.value

    @property
    def wash_type_name(self) -> Optional[str]:
        return self.wash_type.name if self.wash_type else None

    def __repr__(self):
        return (
            f"<Appointment(id={self.id}, status='{self.status}', "
            f"date='{self.date}', time='{self.time}', "
            f"client_name='{self.client_name}')>"
        )
