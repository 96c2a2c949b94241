from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.wash_type import WashType, WashTypeCreate, WashTypeList
from app.services.wash_type import WashTypeService

router = APIRouter()


@router.get("/", response_model=WashTypeList)
async def get_wash_types(
    include_inactive: bool = Query(False, description="Include retired wash types"),
    db: AsyncSession = Depends(get_db),
):
    """The wash-type catalog with prices, in display order."""
    wash_types = await WashTypeService.get_wash_types(db, include_inactive)
    return WashTypeList(wash_types=wash_types, total=len(wash_types))


@router.post("/", response_model=WashType, status_code=status.HTTP_201_CREATED)
async def create_wash_type(
    wash_type_data: WashTypeCreate,
    db: AsyncSession = Depends(get_db),
):
    """Add a wash type to the catalog."""
    try:
        return await WashTypeService.create_wash_type(db, wash_type_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{wash_type_id}", response_model=WashType)
async def get_wash_type(wash_type_id: int, db: AsyncSession = Depends(get_db)):
    wash_type = await WashTypeService.get_wash_type(db, wash_type_id)
    if not wash_type:
        raise HTTPException(status_code=404, detail="Wash type not found")
    return wash_type
