from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps.errors import to_http_exception
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.schemas.appointment import Appointment
from app.schemas.client import (
    ClientCreate,
    ClientListResponse,
    ClientResponse,
    ClientUpdate,
)
from app.services.client import client_service

router = APIRouter()


@router.post("/", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new client."""
    try:
        client = await client_service.create_client(db, client_data)
        return ClientResponse.model_validate(client)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/", response_model=ClientListResponse)
async def get_clients(
    query: Optional[str] = Query(
        None, description="Search in name, phone, email, vehicle or plate"
    ),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Get list of clients with pagination."""
    return await client_service.get_clients(
        db, query=query, page=page, page_size=page_size
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: int, db: AsyncSession = Depends(get_db)):
    """Get a specific client."""
    try:
        return await client_service.get_client(db, client_id)
    except NotFoundError as e:
        raise to_http_exception(e)


@router.put("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: int,
    client_update: ClientUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Update client information."""
    try:
        return await client_service.update_client(db, client_id, client_update)
    except (NotFoundError, ValueError) as e:
        raise to_http_exception(e)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: int, db: AsyncSession = Depends(get_db)):
    """Delete a client. Their appointments are kept."""
    try:
        await client_service.delete_client(db, client_id)
    except NotFoundError as e:
        raise to_http_exception(e)


@router.get("/{client_id}/appointments", response_model=List[Appointment])
async def get_client_appointment_history(
    client_id: int,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Get the client's appointment history, newest first."""
    try:
        return await client_service.get_client_appointment_history(
            db, client_id, limit
        )
    except NotFoundError as e:
        raise to_http_exception(e)
