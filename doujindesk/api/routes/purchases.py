"""
Ticket purchase endpoints.

Checkout is public; lookups by id or email serve attendees re-downloading
their tickets. Listing, editing and refunds are admin only.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.purchase import PurchaseCreate, PurchaseUpdate, PurchaseResponse
from doujindesk.services import purchase_service
from doujindesk.services.cache_service import commit_and_invalidate
from doujindesk.core.security import require_admin

router = APIRouter(prefix="/purchases", tags=["Purchases"])


@router.post("", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(request: PurchaseCreate, db: AsyncSession = Depends(get_db)):
    """
    Buy tickets.

    Capacity is taken with an optimistic lock on the ticket type. If a
    concurrent checkout wins the race it retries up to 3 times before
    returning 409.
    """
    purchase = await purchase_service.purchase_ticket(db, request)
    await commit_and_invalidate(db)
    return purchase


@router.get("", response_model=list[PurchaseResponse])
async def list_purchases(
    payment_status: Optional[Literal["pending", "paid", "failed", "refunded"]] = Query(None),
    ticket_type_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await purchase_service.list_purchases(db, payment_status, ticket_type_id, skip, limit)


@router.get("/by-email", response_model=list[PurchaseResponse])
async def purchases_by_email(email: EmailStr = Query(...), db: AsyncSession = Depends(get_db)):
    return await purchase_service.get_purchases_by_email(db, email)


@router.get("/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(purchase_id: str, db: AsyncSession = Depends(get_db)):
    return await purchase_service.get_purchase(db, purchase_id)


@router.patch("/{purchase_id}", response_model=PurchaseResponse)
async def update_purchase(
    purchase_id: str,
    updates: PurchaseUpdate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    purchase = await purchase_service.update_purchase(db, purchase_id, updates)
    await commit_and_invalidate(db)
    return purchase


@router.post("/{purchase_id}/refund", response_model=PurchaseResponse)
async def refund_purchase(
    purchase_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Refund a paid purchase and return its tickets to sale."""
    purchase = await purchase_service.refund_purchase(db, purchase_id)
    await commit_and_invalidate(db)
    return purchase
