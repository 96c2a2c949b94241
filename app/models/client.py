import re

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


class Client(Base):
    """Car-wash client record."""

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)

    # Personal information
    name = Column(String(200), nullable=False, index=True)
    phone = Column(String(30), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True, index=True)

    # Vehicle
    vehicle_model = Column(String(150), nullable=True)
    license_plate = Column(String(20), nullable=True)

    notes = Column(Text, nullable=True)  # Staff notes about client

    # Audit timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    appointments = relationship("Appointment", back_populates="client")

    @property
    def phone_digits(self) -> str:
        return re.sub(r"\D", "", self.phone or "")

    def __repr__(self):
        return (
            f"<Client(id={self.id}, name='{self.name}', "
            f"phone='{self.phone}', email='{self.email}')>"
        )
