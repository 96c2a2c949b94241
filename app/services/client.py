import math
from typing import List, Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.core.exceptions import NotFoundError
from app.models.appointment import Appointment
from app.models.client import Client
from app.schemas.client import ClientCreate, ClientListResponse, ClientUpdate
from app.utils.validation import phone_digits

logger = structlog.get_logger(__name__)


class ClientService:
    """Service for client management operations."""

    async def create_client(self, db: AsyncSession, client_data: ClientCreate) -> Client:
        """Create a new client; the phone number must not be registered yet."""
        try:
            existing = await self.get_client_by_phone(db, client_data.phone)
            if existing:
                raise ValueError(
                    f"Client with phone {client_data.phone} already exists"
                )

            client = Client(**client_data.model_dump())
            if client.license_plate:
                client.license_plate = client.license_plate.strip().upper()

            db.add(client)
            await db.commit()
            await db.refresh(client)

            logger.info("Client created successfully", client_id=client.id)
            return client

        except IntegrityError as e:
            await db.rollback()
            logger.error(
                "Failed to create client due to integrity constraint", error=str(e)
            )
            raise ValueError("Client with this phone number already exists")

    async def get_client(self, db: AsyncSession, client_id: int) -> Client:
        result = await db.execute(select(Client).where(Client.id == client_id))
        client = result.scalar_one_or_none()
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    async def get_client_by_phone(
        self, db: AsyncSession, phone: str
    ) -> Optional[Client]:
        """Find a client whose phone has the same digits, ignoring formatting."""
        digits = phone_digits(phone)
        if not digits:
            return None

        # Stored numbers keep their formatting, so compare digits here
        result = await db.execute(select(Client))
        for client in result.scalars().all():
            if client.phone_digits == digits:
                return client
        return None

    async def get_clients(
        self,
        db: AsyncSession,
        query: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> ClientListResponse:
        """List clients by name, optionally filtered by a free-text query."""
        stmt = select(Client)

        if query:
            search_term = f"%{query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Client.name).like(search_term),
                    func.lower(Client.phone).like(search_term),
                    func.lower(Client.email).like(search_term),
                    func.lower(Client.vehicle_model).like(search_term),
                    func.lower(Client.license_plate).like(search_term),
                )
            )

        count_query = select(func.count()).select_from(stmt.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        offset = (page - 1) * page_size
        result = await db.execute(
            stmt.order_by(Client.name, Client.id).offset(offset).limit(page_size)
        )
        clients = list(result.scalars().all())

        return ClientListResponse(
            clients=clients,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        )

    async def update_client(
        self, db: AsyncSession, client_id: int, client_update: ClientUpdate
    ) -> Client:
        """Update client information."""
        client = await self.get_client(db, client_id)

        update_data = client_update.model_dump(exclude_unset=True)

        if "phone" in update_data and update_data["phone"]:
            other = await self.get_client_by_phone(db, update_data["phone"])
            if other and other.id != client.id:
                raise ValueError(
                    f"Client with phone {update_data['phone']} already exists"
                )
        if update_data.get("license_plate"):
            update_data["license_plate"] = update_data["license_plate"].strip().upper()

        try:
            for field, value in update_data.items():
                setattr(client, field, value)

            await db.commit()
            await db.refresh(client)

        except IntegrityError as e:
            await db.rollback()
            logger.error(
                "Failed to update client due to integrity constraint",
                client_id=client_id,
                error=str(e),
            )
            raise ValueError("Update failed due to constraint violation")

        logger.info(
            "Client updated successfully",
            client_id=client_id,
            updated_fields=list(update_data.keys()),
        )
        return client

    async def delete_client(self, db: AsyncSession, client_id: int) -> None:
        """Delete a client; their appointments are kept and unlinked."""
        client = await self.get_client(db, client_id)

        result = await db.execute(
            select(Appointment).where(Appointment.client_id == client_id)
        )
        for appointment in result.unique().scalars().all():
            appointment.client_id = None

        await db.delete(client)
        await db.commit()

        logger.info("Client deleted", client_id=client_id)

    async def get_client_appointment_history(
        self, db: AsyncSession, client_id: int, limit: int = 50
    ) -> List[Appointment]:
        """Get the client's appointments, newest first.

        Appointments booked before the client record existed are matched by
        phone number as well as by the stored link.
        """
        client = await self.get_client(db, client_id)
        digits = client.phone_digits

        result = await db.execute(
            select(Appointment)
            .options(joinedload(Appointment.wash_type))
            .order_by(Appointment.date.desc(), Appointment.time.desc())
        )

        history = [
            appointment
            for appointment in result.unique().scalars().all()
            if appointment.client_id == client.id
            or phone_digits(appointment.phone) == digits
        ]
        return history[:limit]


client_service = ClientService()
