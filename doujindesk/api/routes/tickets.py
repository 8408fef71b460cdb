"""
Ticket catalog, price quotes and sales statistics.

The active catalog listing and the sales statistics are cached in Redis;
every catalog mutation drops the cache.
"""

from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.ticket import (
    TicketTypeCreate,
    TicketTypeUpdate,
    TicketTypeResponse,
    QuoteRequest,
    QuoteResponse,
    DiscountApplied,
    SalesStatsResponse,
)
from doujindesk.services import catalog_service
from doujindesk.services.pricing import is_early_bird
from doujindesk.services.purchase_service import quote
from doujindesk.services.stats_service import get_sales_stats
from doujindesk.services.cache_service import ACTIVE_TYPES_KEY, get_cached, set_cached, commit_and_invalidate
from doujindesk.core.security import get_current_user_id, require_admin
from doujindesk.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/types", response_model=list[TicketTypeResponse])
async def list_ticket_types(db: AsyncSession = Depends(get_db)):
    return await catalog_service.list_ticket_types(db)


@router.get("/types/active", response_model=list[TicketTypeResponse])
async def list_active_ticket_types(db: AsyncSession = Depends(get_db)):
    """Ticket types currently on sale. Cached until the catalog or ledger changes."""
    cached = await get_cached(ACTIVE_TYPES_KEY)
    if cached is not None:
        return cached

    ticket_types = await catalog_service.get_active_ticket_types(db)
    payload = [TicketTypeResponse.model_validate(t).model_dump(mode="json") for t in ticket_types]
    await set_cached(ACTIVE_TYPES_KEY, payload)
    return payload


@router.get("/types/{ticket_type_id}", response_model=TicketTypeResponse)
async def get_ticket_type(ticket_type_id: str, db: AsyncSession = Depends(get_db)):
    return await catalog_service.get_ticket_type(db, ticket_type_id)


@router.post("/types", response_model=TicketTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket_type(
    data: TicketTypeCreate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ticket_type = await catalog_service.create_ticket_type(db, data)
    await commit_and_invalidate(db)
    return ticket_type


@router.patch("/types/{ticket_type_id}", response_model=TicketTypeResponse)
async def update_ticket_type(
    ticket_type_id: str,
    updates: TicketTypeUpdate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ticket_type = await catalog_service.update_ticket_type(db, ticket_type_id, updates)
    await commit_and_invalidate(db)
    return ticket_type


@router.delete("/types/{ticket_type_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket_type(
    ticket_type_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await catalog_service.delete_ticket_type(db, ticket_type_id)
    await commit_and_invalidate(db)


@router.post("/quote", response_model=QuoteResponse)
async def quote_tickets(request: QuoteRequest, db: AsyncSession = Depends(get_db)):
    """Price an order without buying it."""
    ticket_type, price = await quote(db, request)
    discount = price.discount_applied
    return QuoteResponse(
        ticket_type_id=ticket_type.id,
        quantity=request.quantity,
        currency=request.currency,
        price_idr=price.price_idr,
        price_usd=float(price.price_usd),
        discount_applied=DiscountApplied.model_validate(discount) if discount else None,
        early_bird=is_early_bird(ticket_type, date.today()),
    )


@router.get("/stats", response_model=SalesStatsResponse)
async def sales_stats(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Sales totals, per-type and per-day breakdowns and refund totals.
    Served from Redis when cached.
    """
    return await get_sales_stats(db)
