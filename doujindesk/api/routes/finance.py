"""
Financial ledger endpoints. All admin only.
"""

from decimal import Decimal
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.finance import (
    TransactionCreate,
    TransactionUpdate,
    TransactionResponse,
    FinancialSummary,
    RefundCreate,
    RefundReject,
    RefundResponse,
    ExchangeRateUpdate,
    ExchangeRateResponse,
    ConversionResponse,
)
from doujindesk.services import finance_service
from doujindesk.core.security import require_admin

router = APIRouter(prefix="/finance", tags=["Finance"])


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    type: Optional[Literal["payment", "refund", "fee", "commission"]] = Query(None),
    status: Optional[Literal["pending", "completed", "failed", "cancelled"]] = Query(None),
    currency: Optional[Literal["IDR", "USD"]] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.list_transactions(
        db,
        transaction_type=type,
        transaction_status=status,
        currency=currency,
        search=search,
        skip=skip,
        limit=limit,
    )


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
async def create_transaction(
    data: TransactionCreate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.add_transaction(db, data)


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: str,
    updates: TransactionUpdate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.update_transaction(db, transaction_id, updates)


@router.delete("/transactions/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await finance_service.delete_transaction(db, transaction_id)


@router.get("/summary", response_model=FinancialSummary)
async def financial_summary(
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.calculate_summary(db)


@router.get("/refunds", response_model=list[RefundResponse])
async def list_refunds(
    status: Optional[Literal["pending", "approved", "rejected", "processed"]] = Query(None),
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.list_refund_requests(db, refund_status=status)


@router.post("/refunds", response_model=RefundResponse, status_code=201)
async def request_refund(
    data: RefundCreate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Open a refund request. A pending refund transaction is added to the ledger alongside it."""
    return await finance_service.process_refund(
        db, data.transaction_id, data.amount, data.reason, requested_by=str(admin_id)
    )


@router.post("/refunds/{refund_id}/approve", response_model=RefundResponse)
async def approve_refund(
    refund_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.approve_refund(db, refund_id, processed_by=str(admin_id))


@router.post("/refunds/{refund_id}/reject", response_model=RefundResponse)
async def reject_refund(
    refund_id: str,
    body: RefundReject,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.reject_refund(db, refund_id, body.reason, processed_by=str(admin_id))


@router.get("/exchange-rates", response_model=list[ExchangeRateResponse])
async def list_exchange_rates(
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await finance_service.list_exchange_rates(db)


@router.put("/exchange-rates", response_model=ExchangeRateResponse)
async def set_exchange_rate(
    data: ExchangeRateUpdate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Store a rate. The inverse pair is updated to match."""
    return await finance_service.set_exchange_rate(db, data)


@router.get("/convert", response_model=ConversionResponse)
async def convert(
    amount: Decimal = Query(..., ge=0),
    from_currency: Literal["IDR", "USD"] = Query(..., alias="from"),
    to_currency: Literal["IDR", "USD"] = Query(..., alias="to"),
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    converted = await finance_service.convert_currency(db, amount, from_currency, to_currency)
    return ConversionResponse(
        amount=float(amount),
        from_currency=from_currency,
        to_currency=to_currency,
        converted=float(converted),
    )
