"""
Ticket catalog service: admin CRUD over ticket types plus the default seed.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from doujindesk.models.ticket import TicketType
from doujindesk.schemas.ticket import TicketTypeCreate, TicketTypeUpdate
from doujindesk.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TICKET_TYPES = [
    {
        "id": "weekend-pass",
        "name": "Weekend Pass",
        "description": "Full access to both Saturday and Sunday events",
        "price_idr": 150000,
        "price_usd": Decimal("10"),
        "category": "weekend",
        "day": "both",
        "benefits": ["Access to both days", "Priority entry", "Event catalog included", "Free parking"],
        "max_quantity": 5000,
        "early_bird_price_idr": 120000,
        "early_bird_price_usd": Decimal("8"),
        "early_bird_end_date": date(2025, 6, 1),
        "age_restriction": "all_ages",
        "requires_id": False,
    },
    {
        "id": "saturday-only",
        "name": "Saturday Pass",
        "description": "Access to Saturday events only",
        "price_idr": 80000,
        "price_usd": Decimal("6"),
        "category": "single_day",
        "day": "saturday",
        "benefits": ["Saturday access", "Event catalog included"],
        "max_quantity": 3000,
        "age_restriction": "all_ages",
        "requires_id": False,
    },
    {
        "id": "sunday-only",
        "name": "Sunday Pass",
        "description": "Access to Sunday events only",
        "price_idr": 80000,
        "price_usd": Decimal("6"),
        "category": "single_day",
        "day": "sunday",
        "benefits": ["Sunday access", "Event catalog included"],
        "max_quantity": 3000,
        "age_restriction": "all_ages",
        "requires_id": False,
    },
    {
        "id": "vip-pass",
        "name": "VIP Pass",
        "description": "Premium access with exclusive benefits",
        "price_idr": 300000,
        "price_usd": Decimal("20"),
        "category": "vip",
        "day": "both",
        "benefits": [
            "Access to both days",
            "VIP lounge access",
            "Priority entry",
            "Exclusive merchandise",
            "Meet & greet opportunities",
            "Premium event catalog",
            "Free parking",
            "Complimentary refreshments",
        ],
        "max_quantity": 500,
        "age_restriction": "adult",
        "requires_id": True,
    },
]


async def seed_ticket_types(db: AsyncSession) -> int:
    """Insert the default ticket types when the catalog is empty. Returns rows added."""
    count = (await db.execute(select(func.count()).select_from(TicketType))).scalar()
    if count:
        return 0

    for entry in DEFAULT_TICKET_TYPES:
        db.add(TicketType(**entry, available_quantity=entry["max_quantity"], is_active=True))
    await db.flush()

    logger.info("ticket_types_seeded", count=len(DEFAULT_TICKET_TYPES))
    return len(DEFAULT_TICKET_TYPES)


async def create_ticket_type(db: AsyncSession, data: TicketTypeCreate) -> TicketType:
    """Add a ticket type. available_quantity defaults to max_quantity."""
    if await db.get(TicketType, data.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Ticket type {data.id} already exists",
        )

    values = data.model_dump()
    if values["available_quantity"] is None:
        values["available_quantity"] = data.max_quantity

    ticket_type = TicketType(**values)
    db.add(ticket_type)
    await db.flush()
    await db.refresh(ticket_type)

    logger.info("ticket_type_created", ticket_type_id=ticket_type.id, capacity=ticket_type.max_quantity)
    return ticket_type


async def get_ticket_type(db: AsyncSession, ticket_type_id: str) -> TicketType:
    result = await db.execute(select(TicketType).where(TicketType.id == ticket_type_id))
    ticket_type = result.scalar_one_or_none()

    if not ticket_type:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ticket type {ticket_type_id} not found",
        )
    return ticket_type


async def list_ticket_types(db: AsyncSession) -> list[TicketType]:
    result = await db.execute(select(TicketType).order_by(TicketType.price_idr.asc(), TicketType.id))
    return list(result.scalars().all())


async def get_active_ticket_types(db: AsyncSession) -> list[TicketType]:
    """Ticket types that are on sale and not sold out."""
    result = await db.execute(
        select(TicketType)
        .where(TicketType.is_active.is_(True), TicketType.available_quantity > 0)
        .order_by(TicketType.price_idr.asc(), TicketType.id)
    )
    return list(result.scalars().all())


async def update_ticket_type(db: AsyncSession, ticket_type_id: str, updates: TicketTypeUpdate) -> TicketType:
    """
    Merge the given fields into a ticket type.
    Rejects edits that would leave available_quantity outside [0, max_quantity].
    """
    ticket_type = await get_ticket_type(db, ticket_type_id)
    changes = updates.model_dump(exclude_unset=True)

    max_quantity = changes.get("max_quantity", ticket_type.max_quantity)
    available = changes.get("available_quantity", ticket_type.available_quantity)
    if available > max_quantity:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"available_quantity ({available}) cannot exceed max_quantity ({max_quantity})",
        )

    for field, value in changes.items():
        setattr(ticket_type, field, value)
    ticket_type.version = ticket_type.version + 1

    await db.flush()
    await db.refresh(ticket_type)

    logger.info("ticket_type_updated", ticket_type_id=ticket_type_id, fields=sorted(changes))
    return ticket_type


async def delete_ticket_type(db: AsyncSession, ticket_type_id: str) -> None:
    """Remove a ticket type entirely. Existing purchases keep their totals."""
    await get_ticket_type(db, ticket_type_id)
    await db.execute(delete(TicketType).where(TicketType.id == ticket_type_id))
    await db.flush()
    logger.warning("ticket_type_deleted", ticket_type_id=ticket_type_id)
