"""
Purchase ledger with concurrency-safe capacity decrements.

CONCURRENCY STRATEGY: Optimistic Locking with Retry
====================================================

Problem:
  Two attendees buy the last tickets of a type at the same moment.
  Both read available_quantity=2, both subtract 2, both succeed.
  Result: Overselling.

Solution:
  The ticket_types row carries a `version` column.

  1. Read the ticket type's current version
  2. UPDATE ticket_types
        SET available_quantity = available_quantity - N, version = version + 1
      WHERE id = :id AND version = :current AND available_quantity >= N
  3. If rows_affected == 0 another purchase won the race -> retry

  The CHECK constraint (available_quantity >= 0) is the last line of defence.

Payment status moves one way: pending -> paid -> {refunded | failed}, or
pending -> failed. Each move is an UPDATE guarded by the status it leaves
(WHERE payment_status = :from), so two concurrent refunds cannot both
succeed. Only the winner of that UPDATE puts the tickets back, capped at
max_quantity.
"""

import time
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, update, func, case
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from doujindesk.models.ticket import TicketType, TicketPurchase
from doujindesk.schemas.purchase import PurchaseCreate, PurchaseUpdate
from doujindesk.schemas.ticket import QuoteRequest
from doujindesk.services.pricing import (
    DiscountFlags,
    DiscountPolicy,
    PriceQuote,
    calculate_ticket_price,
)
from doujindesk.services.qr_codec import QRCodeData, encode_qr_payload, generate_rfid_code
from doujindesk.services.catalog_service import get_ticket_type
from doujindesk.services.ids import make_id
from doujindesk.db.base import utcnow
from doujindesk.core.config import get_settings
from doujindesk.core.logging import get_logger
from doujindesk.core.metrics import db_retries, tickets_sold, purchase_latency, record_purchase, refunds_processed

logger = get_logger(__name__)
settings = get_settings()

MAX_RETRY_ATTEMPTS = 3

# Moves PATCH may make; refunded is reached only through refund_purchase
PAYMENT_TRANSITIONS = {
    "pending": ("paid", "failed"),
    "paid": ("failed",),
}
RELEASING_STATUSES = ("failed", "refunded")


def generate_purchase_id() -> str:
    return make_id("ticket")


def simulate_payment(amount, currency: str, method: str) -> str:
    """Stand-in payment gateway. Always succeeds and returns a reference."""
    reference = make_id("PAY", upper=True)
    logger.debug("payment_simulated", amount=str(amount), currency=currency, method=method, reference=reference)
    return reference


async def quote(db: AsyncSession, request: QuoteRequest) -> tuple[TicketType, PriceQuote]:
    ticket_type = await get_ticket_type(db, request.ticket_type_id)
    price = calculate_ticket_price(
        ticket_type,
        request.quantity,
        DiscountFlags(is_pwd=request.is_pwd, is_child=request.is_child, age=request.age),
        currency=request.currency,
        policy=DiscountPolicy.from_settings(settings),
    )
    return ticket_type, price


async def add_purchase(db: AsyncSession, purchase: TicketPurchase) -> TicketPurchase:
    """
    Insert a purchase and take its quantity out of the ticket type's capacity.
    Retries up to MAX_RETRY_ATTEMPTS on version conflicts.
    """
    quantity = purchase.quantity
    type_id = purchase.ticket_type_id

    for attempt in range(1, MAX_RETRY_ATTEMPTS + 1):
        result = await db.execute(
            select(TicketType.version, TicketType.available_quantity, TicketType.is_active)
            .where(TicketType.id == type_id)
        )
        row = result.one_or_none()

        if row is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Ticket type {type_id} not found",
            )

        current_version, available, is_active = row

        if not is_active:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ticket type {type_id} is not on sale",
            )

        if available < quantity:
            logger.warning("purchase_failed_sold_out", ticket_type_id=type_id, requested=quantity, available=available)
            record_purchase("sold_out")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Not enough tickets. Requested: {quantity}, Available: {available}",
            )

        update_result = await db.execute(
            update(TicketType)
            .where(
                TicketType.id == type_id,
                TicketType.version == current_version,
                TicketType.available_quantity >= quantity,
            )
            .values(
                available_quantity=TicketType.available_quantity - quantity,
                version=TicketType.version + 1,
            )
        )

        if update_result.rowcount == 0:
            db_retries.inc()
            logger.info("purchase_retry", ticket_type_id=type_id, attempt=attempt, reason="version_conflict")
            if attempt == MAX_RETRY_ATTEMPTS:
                record_purchase("error")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Purchase failed due to high demand. Please try again.",
                )
            continue

        db.add(purchase)
        await db.flush()
        await db.refresh(purchase)

        tickets_sold.labels(ticket_type=type_id).inc(quantity)
        logger.info(
            "purchase_created",
            purchase_id=purchase.id,
            ticket_type_id=type_id,
            quantity=quantity,
            attempt=attempt,
        )
        return purchase

    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Purchase failed unexpectedly",
    )


async def purchase_ticket(db: AsyncSession, request: PurchaseCreate) -> TicketPurchase:
    """
    Full checkout: price the order, take payment, issue the QR token and RFID
    code, then record the purchase against capacity.
    """
    started = time.perf_counter()

    ticket_type, price = await quote(
        db,
        QuoteRequest(
            ticket_type_id=request.ticket_type_id,
            quantity=request.quantity,
            currency=request.currency,
            is_pwd=request.is_pwd,
            is_child=request.is_child,
            age=request.age,
        ),
    )

    if ticket_type.requires_id and not request.attendee_id_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Ticket type {ticket_type.id} requires an ID number",
        )

    reference = simulate_payment(price.total_in(request.currency), request.currency, request.payment_method)

    now = utcnow()
    purchase_id = generate_purchase_id()
    valid_until = now + timedelta(days=settings.TICKET_VALIDITY_DAYS)
    token = encode_qr_payload(
        QRCodeData(
            ticket_id=purchase_id,
            event_id=settings.EVENT_ID,
            ticket_type=ticket_type.id,
            purchase_date=now,
            valid_until=valid_until,
            attendee_name=request.attendee_name,
            attendee_email=request.attendee_email,
        )
    )

    discount = price.discount_applied
    purchase = TicketPurchase(
        id=purchase_id,
        ticket_type_id=ticket_type.id,
        attendee_name=request.attendee_name,
        attendee_email=request.attendee_email,
        attendee_phone=request.attendee_phone,
        attendee_age=request.age,
        attendee_id_number=request.attendee_id_number,
        quantity=request.quantity,
        total_price_idr=price.price_idr,
        total_price_usd=price.price_usd,
        currency=request.currency,
        discount_type=discount.type if discount else None,
        discount_amount=discount.amount if discount else None,
        discount_percentage=discount.percentage if discount else None,
        payment_status="paid",
        payment_method=request.payment_method,
        payment_reference=reference,
        qr_code=token,
        rfid_code=generate_rfid_code(),
        purchase_date=now,
        valid_from=now,
        valid_until=valid_until,
        is_used=False,
        special_access=list(request.special_access),
    )

    purchase = await add_purchase(db, purchase)

    record_purchase("success")
    purchase_latency.observe(time.perf_counter() - started)
    return purchase


async def get_purchase(db: AsyncSession, purchase_id: str) -> TicketPurchase:
    result = await db.execute(select(TicketPurchase).where(TicketPurchase.id == purchase_id))
    purchase = result.scalar_one_or_none()

    if not purchase:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Purchase {purchase_id} not found",
        )
    return purchase


async def get_purchase_by_qr(db: AsyncSession, qr_code: str) -> Optional[TicketPurchase]:
    result = await db.execute(select(TicketPurchase).where(TicketPurchase.qr_code == qr_code))
    return result.scalar_one_or_none()


async def list_purchases(
    db: AsyncSession,
    payment_status: Optional[str] = None,
    ticket_type_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[TicketPurchase]:
    query = select(TicketPurchase)
    if payment_status:
        query = query.where(TicketPurchase.payment_status == payment_status)
    if ticket_type_id:
        query = query.where(TicketPurchase.ticket_type_id == ticket_type_id)

    result = await db.execute(
        query.order_by(TicketPurchase.purchase_date.desc(), TicketPurchase.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


async def get_purchases_by_email(db: AsyncSession, email: str) -> list[TicketPurchase]:
    """All purchases for an attendee email (case-insensitive), newest first."""
    result = await db.execute(
        select(TicketPurchase)
        .where(func.lower(TicketPurchase.attendee_email) == email.lower())
        .order_by(TicketPurchase.purchase_date.desc(), TicketPurchase.id.desc())
    )
    return list(result.scalars().all())


async def _move_payment_status(db: AsyncSession, purchase: TicketPurchase, from_status: str, to_status: str) -> bool:
    """
    Conditional status flip. Moving to failed or refunded hands the tickets
    back to the ticket type, capped at max_quantity. Returns False when another
    request changed the status first.
    """
    result = await db.execute(
        update(TicketPurchase)
        .where(TicketPurchase.id == purchase.id, TicketPurchase.payment_status == from_status)
        .values(payment_status=to_status, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return False

    if to_status in RELEASING_STATUSES and purchase.ticket_type_id is not None:
        restored = TicketType.available_quantity + purchase.quantity
        await db.execute(
            update(TicketType)
            .where(TicketType.id == purchase.ticket_type_id)
            .values(
                available_quantity=case(
                    (restored > TicketType.max_quantity, TicketType.max_quantity),
                    else_=restored,
                ),
                version=TicketType.version + 1,
            )
            .execution_options(synchronize_session="fetch")
        )

    await db.refresh(purchase)
    return True


async def update_purchase(db: AsyncSession, purchase_id: str, updates: PurchaseUpdate) -> TicketPurchase:
    """
    Merge attendee fields and move payment status forward.
    Allowed moves: pending -> paid, pending -> failed, paid -> failed.
    Refunded purchases are frozen.
    """
    purchase = await get_purchase(db, purchase_id)
    current = purchase.payment_status

    if current == "refunded":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Refunded purchases cannot be modified",
        )

    changes = updates.model_dump(exclude_unset=True)
    new_status = changes.pop("payment_status", None)
    if new_status == current:
        new_status = None

    if new_status is not None and new_status not in PAYMENT_TRANSITIONS.get(current, ()):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Payment status cannot move from {current} to {new_status}",
        )

    for field, value in changes.items():
        setattr(purchase, field, value)
    await db.flush()

    if new_status is not None and not await _move_payment_status(db, purchase, current, new_status):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Purchase {purchase_id} changed status concurrently",
        )

    await db.refresh(purchase)

    logger.info(
        "purchase_updated",
        purchase_id=purchase_id,
        fields=sorted(changes),
        payment_status=purchase.payment_status,
    )
    return purchase


async def refund_purchase(db: AsyncSession, purchase_id: str) -> TicketPurchase:
    """
    Refund a paid purchase and release its tickets back to the ticket type.
    """
    purchase = await get_purchase(db, purchase_id)

    if purchase.payment_status != "paid" or not await _move_payment_status(db, purchase, "paid", "refunded"):
        refunds_processed.labels(source="ticket", result="rejected").inc()
        await db.refresh(purchase)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Only paid purchases can be refunded (current status: {purchase.payment_status})",
        )

    refunds_processed.labels(source="ticket", result="refunded").inc()
    logger.info(
        "refund_processed",
        purchase_id=purchase_id,
        ticket_type_id=purchase.ticket_type_id,
        quantity=purchase.quantity,
    )
    return purchase
