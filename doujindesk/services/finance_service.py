"""
Financial ledger: transactions, refund requests and exchange rates.

Refund workflow:
  process_refund   -> RefundRequest(pending) + Transaction(type=refund, pending)
  approve_refund   -> request approved, refund transaction completed
  reject_refund    -> request rejected, refund transaction failed

The refund transaction carries {"originalTransactionId", "refundRequestId",
"reason"} in its metadata; that link is how approve/reject find it.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from doujindesk.models.finance import Transaction, RefundRequest, ExchangeRate
from doujindesk.schemas.finance import TransactionCreate, TransactionUpdate, ExchangeRateUpdate
from doujindesk.services.ids import make_id
from doujindesk.db.base import utcnow
from doujindesk.core.logging import get_logger
from doujindesk.core.metrics import refunds_processed

logger = get_logger(__name__)

CURRENCIES = ("IDR", "USD")
DEFAULT_EXCHANGE_RATES = [("USD", "IDR", Decimal("15800"), "Bank Indonesia")]


def generate_transaction_id() -> str:
    return make_id("txn")


def generate_refund_id() -> str:
    return make_id("ref", length=6)


async def add_transaction(db: AsyncSession, data: TransactionCreate) -> Transaction:
    values = data.model_dump(exclude={"metadata"})
    transaction = Transaction(id=generate_transaction_id(), extra=dict(data.metadata), **values)
    db.add(transaction)
    await db.flush()
    await db.refresh(transaction)

    logger.info(
        "transaction_created",
        transaction_id=transaction.id,
        type=transaction.type,
        amount=str(transaction.amount),
        currency=transaction.currency,
    )
    return transaction


async def get_transaction(db: AsyncSession, transaction_id: str) -> Transaction:
    result = await db.execute(select(Transaction).where(Transaction.id == transaction_id))
    transaction = result.scalar_one_or_none()

    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Transaction {transaction_id} not found",
        )
    return transaction


async def update_transaction(db: AsyncSession, transaction_id: str, updates: TransactionUpdate) -> Transaction:
    transaction = await get_transaction(db, transaction_id)

    changes = updates.model_dump(exclude_unset=True)
    if "metadata" in changes:
        transaction.extra = changes.pop("metadata") or {}
    for field, value in changes.items():
        setattr(transaction, field, value)
    transaction.updated_at = utcnow()

    await db.flush()
    await db.refresh(transaction)

    logger.info("transaction_updated", transaction_id=transaction_id, status=transaction.status)
    return transaction


async def delete_transaction(db: AsyncSession, transaction_id: str) -> None:
    await get_transaction(db, transaction_id)
    await db.execute(delete(Transaction).where(Transaction.id == transaction_id))
    await db.flush()
    logger.warning("transaction_deleted", transaction_id=transaction_id)


async def list_transactions(
    db: AsyncSession,
    transaction_type: Optional[str] = None,
    transaction_status: Optional[str] = None,
    currency: Optional[str] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Transaction]:
    """Filter the ledger. `search` matches description, reference or id."""
    query = select(Transaction)
    if transaction_type:
        query = query.where(Transaction.type == transaction_type)
    if transaction_status:
        query = query.where(Transaction.status == transaction_status)
    if currency:
        query = query.where(Transaction.currency == currency)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Transaction.description.ilike(pattern),
                Transaction.reference.ilike(pattern),
                Transaction.id.ilike(pattern),
            )
        )

    result = await db.execute(
        query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


def summarize_transactions(transactions) -> dict:
    """
    Totals per currency over completed payments, refunds and fees, plus
    pending amounts. Refund rate is completed refunds per completed payment.
    """
    def per_currency() -> dict[str, Decimal]:
        return {code: Decimal("0") for code in CURRENCIES}

    revenue, refunds, fees, pending = per_currency(), per_currency(), per_currency(), per_currency()
    payment_counts = {code: 0 for code in CURRENCIES}
    refund_count = 0
    count = 0

    for txn in transactions:
        count += 1
        amount = Decimal(str(txn.amount))
        currency = txn.currency

        if txn.status == "completed":
            if txn.type == "payment":
                revenue[currency] += amount
                payment_counts[currency] += 1
            elif txn.type == "refund":
                refunds[currency] += amount
                refund_count += 1
            elif txn.type == "fee":
                fees[currency] += amount
        elif txn.status == "pending":
            pending[currency] += amount

    payment_count = sum(payment_counts.values())
    average = {
        code: (revenue[code] / payment_counts[code]) if payment_counts[code] else Decimal("0")
        for code in CURRENCIES
    }

    def as_floats(values: dict[str, Decimal]) -> dict[str, float]:
        return {code: float(value) for code, value in values.items()}

    return {
        "total_revenue": as_floats(revenue),
        "total_refunds": as_floats(refunds),
        "total_fees": as_floats(fees),
        "net_revenue": as_floats({code: revenue[code] - refunds[code] - fees[code] for code in CURRENCIES}),
        "pending_amount": as_floats(pending),
        "average_transaction_value": as_floats(average),
        "transaction_count": count,
        "refund_rate": round(refund_count / payment_count * 100, 2) if payment_count else 0.0,
    }


async def calculate_summary(db: AsyncSession) -> dict:
    result = await db.execute(select(Transaction))
    return summarize_transactions(result.scalars().all())


async def _requested_refund_total(db: AsyncSession, transaction_id: str) -> Decimal:
    """Sum of the transaction's refund requests that were not rejected."""
    result = await db.execute(
        select(func.coalesce(func.sum(RefundRequest.amount), 0)).where(
            RefundRequest.transaction_id == transaction_id,
            RefundRequest.status != "rejected",
        )
    )
    return Decimal(str(result.scalar()))


async def process_refund(
    db: AsyncSession,
    transaction_id: str,
    amount: Decimal,
    reason: str,
    requested_by: str,
) -> RefundRequest:
    """Open a refund request against a transaction, with its pending refund transaction."""
    original = await get_transaction(db, transaction_id)

    refundable = Decimal(str(original.amount)) - await _requested_refund_total(db, transaction_id)
    if amount > refundable:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Refund amount exceeds the refundable balance ({refundable} {original.currency})",
        )

    request = RefundRequest(
        id=generate_refund_id(),
        transaction_id=transaction_id,
        amount=amount,
        currency=original.currency,
        reason=reason,
        status="pending",
        requested_by=requested_by,
        requested_at=utcnow(),
    )
    db.add(request)

    db.add(
        Transaction(
            id=generate_transaction_id(),
            type="refund",
            amount=amount,
            currency=original.currency,
            status="pending",
            description=f"Refund for {original.description}",
            reference=f"REF_{original.reference}",
            circle_id=original.circle_id,
            ticket_id=original.ticket_id,
            payment_method=original.payment_method,
            extra={
                "originalTransactionId": transaction_id,
                "refundRequestId": request.id,
                "reason": reason,
            },
        )
    )
    await db.flush()
    await db.refresh(request)

    logger.info(
        "refund_requested",
        refund_id=request.id,
        transaction_id=transaction_id,
        amount=str(amount),
        currency=request.currency,
    )
    return request


async def get_refund_request(db: AsyncSession, refund_id: str) -> RefundRequest:
    result = await db.execute(select(RefundRequest).where(RefundRequest.id == refund_id))
    request = result.scalar_one_or_none()

    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Refund request {refund_id} not found",
        )
    return request


async def list_refund_requests(db: AsyncSession, refund_status: Optional[str] = None) -> list[RefundRequest]:
    query = select(RefundRequest)
    if refund_status:
        query = query.where(RefundRequest.status == refund_status)
    result = await db.execute(query.order_by(RefundRequest.requested_at.desc(), RefundRequest.id.desc()))
    return list(result.scalars().all())


async def _linked_refund_transaction(db: AsyncSession, request: RefundRequest) -> Optional[Transaction]:
    # JSON path queries differ per backend; the candidate set is small
    result = await db.execute(
        select(Transaction).where(
            Transaction.type == "refund",
            Transaction.status == "pending",
            Transaction.currency == request.currency,
        )
    )
    for transaction in result.scalars().all():
        if (transaction.extra or {}).get("refundRequestId") == request.id:
            return transaction
    return None


async def _settle_refund(
    db: AsyncSession,
    refund_id: str,
    decision: str,
    transaction_status: str,
    processed_by: str,
    notes: Optional[str] = None,
) -> RefundRequest:
    request = await get_refund_request(db, refund_id)

    if request.status != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Refund request {refund_id} is already {request.status}",
        )

    request.status = decision
    request.processed_at = utcnow()
    request.processed_by = processed_by
    if notes is not None:
        request.notes = notes

    transaction = await _linked_refund_transaction(db, request)
    if transaction is not None:
        transaction.status = transaction_status
        transaction.updated_at = utcnow()

    await db.flush()
    await db.refresh(request)

    refunds_processed.labels(source="finance", result=decision).inc()
    logger.info(
        "refund_settled",
        refund_id=refund_id,
        decision=decision,
        processed_by=processed_by,
        transaction_id=transaction.id if transaction else None,
    )
    return request


async def approve_refund(db: AsyncSession, refund_id: str, processed_by: str) -> RefundRequest:
    return await _settle_refund(db, refund_id, "approved", "completed", processed_by)


async def reject_refund(db: AsyncSession, refund_id: str, reason: str, processed_by: str) -> RefundRequest:
    return await _settle_refund(db, refund_id, "rejected", "failed", processed_by, notes=reason)


async def list_exchange_rates(db: AsyncSession) -> list[ExchangeRate]:
    result = await db.execute(select(ExchangeRate).order_by(ExchangeRate.from_currency, ExchangeRate.to_currency))
    return list(result.scalars().all())


async def _upsert_rate(db: AsyncSession, from_currency: str, to_currency: str, rate: Decimal, source: Optional[str]) -> ExchangeRate:
    result = await db.execute(
        select(ExchangeRate).where(
            ExchangeRate.from_currency == from_currency,
            ExchangeRate.to_currency == to_currency,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is None:
        existing = ExchangeRate(from_currency=from_currency, to_currency=to_currency, rate=rate, source=source)
        db.add(existing)
    else:
        existing.rate = rate
        existing.source = source
        existing.last_updated = utcnow()
    return existing


async def set_exchange_rate(db: AsyncSession, data: ExchangeRateUpdate) -> ExchangeRate:
    """Store a rate and its inverse."""
    if data.from_currency == data.to_currency:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Exchange rate currencies must differ",
        )

    rate = await _upsert_rate(db, data.from_currency, data.to_currency, data.rate, data.source)
    inverse = (Decimal("1") / data.rate).quantize(Decimal("1e-10"), rounding=ROUND_HALF_UP)
    await _upsert_rate(db, data.to_currency, data.from_currency, inverse, data.source)

    await db.flush()
    await db.refresh(rate)

    logger.info("exchange_rate_set", from_currency=data.from_currency, to_currency=data.to_currency, rate=str(data.rate))
    return rate


async def seed_exchange_rates(db: AsyncSession) -> int:
    existing = await list_exchange_rates(db)
    if existing:
        return 0

    for from_currency, to_currency, rate, source in DEFAULT_EXCHANGE_RATES:
        await set_exchange_rate(
            db,
            ExchangeRateUpdate(from_currency=from_currency, to_currency=to_currency, rate=rate, source=source),
        )
    return len(DEFAULT_EXCHANGE_RATES) * 2


async def convert_currency(db: AsyncSession, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
    if from_currency == to_currency:
        return amount

    result = await db.execute(
        select(ExchangeRate.rate).where(
            ExchangeRate.from_currency == from_currency,
            ExchangeRate.to_currency == to_currency,
        )
    )
    rate = result.scalar_one_or_none()
    if rate is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No exchange rate from {from_currency} to {to_currency}",
        )

    step = Decimal("1") if to_currency == "IDR" else Decimal("0.01")
    return (amount * Decimal(str(rate))).quantize(step, rounding=ROUND_HALF_UP)
