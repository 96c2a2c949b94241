from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.wash_type import WashType
from app.schemas.wash_type import WashTypeCreate

logger = structlog.get_logger(__name__)

# Price list the business starts with: (code, name, price in euros)
DEFAULT_WASH_TYPES: list[tuple[str, str, str]] = [
    ("LAVADO_COMPLETO_TURISMO", "Lavado Completo Turismo", "23.00"),
    ("LAVADO_INTERIOR_TURISMO", "Lavado Interior Turismo", "16.00"),
    ("LAVADO_EXTERIOR_TURISMO", "Lavado Exterior Turismo", "12.00"),
    ("LAVADO_COMPLETO_RANCHERA", "Lavado Completo Turismo Ranchera", "26.00"),
    ("LAVADO_INTERIOR_RANCHERA", "Lavado Interior Turismo Ranchera", "18.00"),
    ("LAVADO_EXTERIOR_RANCHERA", "Lavado Exterior Turismo Ranchera", "13.00"),
    ("LAVADO_COMPLETO_MONOVOLUMEN", "Lavado Completo Monovolumen/Todoterreno Pequeño", "28.00"),
    ("LAVADO_INTERIOR_MONOVOLUMEN", "Lavado Interior Monovolumen/Todoterreno Pequeño", "19.00"),
    ("LAVADO_EXTERIOR_MONOVOLUMEN", "Lavado Exterior Monovolumen/Todoterreno Pequeño", "14.00"),
    ("LAVADO_COMPLETO_TODOTERRENO", "Lavado Completo Todoterreno Grande", "31.00"),
    ("LAVADO_INTERIOR_TODOTERRENO", "Lavado Interior Todoterreno Grande", "20.00"),
    ("LAVADO_EXTERIOR_TODOTERRENO", "Lavado Exterior Todoterreno Grande", "16.00"),
    ("LAVADO_COMPLETO_FURGONETA_PEQUENA", "Lavado Completo Furgoneta Pequeña", "30.00"),
    ("LAVADO_INTERIOR_FURGONETA_PEQUENA", "Lavado Interior Furgoneta Pequeña", "20.00"),
    ("LAVADO_EXTERIOR_FURGONETA_PEQUENA", "Lavado Exterior Furgoneta Pequeña", "15.00"),
    ("LAVADO_COMPLETO_FURGONETA_GRANDE", "Lavado Completo Furgoneta Grande", "35.00"),
    ("LAVADO_INTERIOR_FURGONETA_GRANDE", "Lavado Interior Furgoneta Grande", "25.00"),
    ("LAVADO_EXTERIOR_FURGONETA_GRANDE", "Lavado Exterior Furgoneta Grande", "20.00"),
    ("TRATAMIENTO_OZONO", "Tratamiento de Ozono", "15.00"),
    ("ENCERADO", "Encerado de Vehículo a Mano", "25.00"),
    ("TAPICERIA_SIN_DESMONTAR", "Limpieza de tapicería sin desmontar asientos", "100.00"),
    ("TAPICERIA_DESMONTANDO", "Limpieza de tapicería desmontando asientos", "150.00"),
]


class WashTypeService:
    """Wash-type catalog operations."""

    @staticmethod
    async def get_wash_types(
        db: AsyncSession, include_inactive: bool = False
    ) -> list[WashType]:
        stmt = select(WashType)
        if not include_inactive:
            stmt = stmt.where(WashType.is_active.is_(True))
        stmt = stmt.order_by(WashType.sort_order, WashType.id)

        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_wash_type(db: AsyncSession, wash_type_id: int) -> Optional[WashType]:
        result = await db.execute(select(WashType).where(WashType.id == wash_type_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_wash_type(db: AsyncSession, data: WashTypeCreate) -> WashType:
        existing = await db.execute(select(WashType).where(WashType.code == data.code))
        if existing.scalar_one_or_none():
            raise ValueError(f"Wash type with code '{data.code}' already exists")

        wash_type = WashType(**data.model_dump())
        db.add(wash_type)
        await db.commit()
        await db.refresh(wash_type)

        logger.info("Wash type created", wash_type_id=wash_type.id, code=wash_type.code)
        return wash_type

    @staticmethod
    async def seed_default_wash_types(db: AsyncSession) -> int:
        """Insert the default price list entries that are missing; return count."""
        result = await db.execute(select(WashType.code))
        existing_codes = set(result.scalars().all())

        created = 0
        for position, (code, name, price) in enumerate(DEFAULT_WASH_TYPES):
            if code in existing_codes:
                continue
            db.add(
                WashType(
                    code=code,
                    name=name,
                    price=Decimal(price),
                    is_active=True,
                    sort_order=position,
                )
            )
            created += 1

        if created:
            await db.commit()
            logger.info("Seeded default wash types", created=created)
        return created
