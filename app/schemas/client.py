from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.utils.validation import validate_email_format, validate_phone_number


class ClientBase(BaseModel):
    """Base client schema with common fields."""

    name: str = Field(..., min_length=1, max_length=200, description="Client name")
    phone: str = Field(..., max_length=30, description="Contact phone")
    email: Optional[str] = Field(None, max_length=255, description="Email address")
    vehicle_model: Optional[str] = Field(None, max_length=150)
    license_plate: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, description="Staff notes about client")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Name cannot be blank")
        return v.strip()

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if not validate_phone_number(v):
            raise ValueError("Phone number must contain at least 9 digits")
        return v.strip()

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v and not validate_email_format(v):
            raise ValueError("Invalid email format")
        return v.strip() if v else v


class ClientCreate(ClientBase):
    """Schema for creating a new client."""


class ClientUpdate(BaseModel):
    """Schema for updating client information."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=255)
    vehicle_model: Optional[str] = Field(None, max_length=150)
    license_plate: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if v is not None and not validate_phone_number(v):
            raise ValueError("Phone number must contain at least 9 digits")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if v and not validate_email_format(v):
            raise ValueError("Invalid email format")
        return v


class ClientResponse(ClientBase):
    """Schema for client responses."""

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientListResponse(BaseModel):
    clients: List[ClientResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
