from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class WashTypeBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=60, pattern=r"^[A-Z0-9_]+$")
    name: str = Field(..., min_length=1, max_length=255)
    price: Decimal = Field(..., ge=0)
    is_active: bool = True
    sort_order: int = 0


class WashTypeCreate(WashTypeBase):
    pass


class WashType(WashTypeBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WashTypeList(BaseModel):
    wash_types: List[WashType]
    total: int
