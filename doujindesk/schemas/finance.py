"""
Pydantic schemas for the financial ledger.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional
from pydantic import BaseModel, Field

from doujindesk.schemas.ticket import Currency

TransactionType = Literal["payment", "refund", "fee", "commission"]
TransactionStatus = Literal["pending", "completed", "failed", "cancelled"]


class TransactionCreate(BaseModel):
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    currency: Currency
    status: TransactionStatus = "pending"
    description: str = Field("", max_length=500)
    reference: str = Field("", max_length=100)
    circle_id: Optional[str] = None
    ticket_id: Optional[str] = None
    payment_method: Optional[str] = Field(None, max_length=50)
    exchange_rate: Optional[Decimal] = Field(None, gt=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class TransactionUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    status: Optional[TransactionStatus] = None
    description: Optional[str] = Field(None, max_length=500)
    reference: Optional[str] = Field(None, max_length=100)
    payment_method: Optional[str] = Field(None, max_length=50)
    metadata: Optional[dict[str, Any]] = None


class TransactionResponse(BaseModel):
    id: str
    type: str
    amount: float
    currency: str
    status: str
    description: str
    reference: str
    circle_id: Optional[str]
    ticket_id: Optional[str]
    payment_method: Optional[str]
    exchange_rate: Optional[float]
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="extra")
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CurrencyAmounts(BaseModel):
    IDR: float = 0
    USD: float = 0


class FinancialSummary(BaseModel):
    total_revenue: CurrencyAmounts
    total_refunds: CurrencyAmounts
    total_fees: CurrencyAmounts
    net_revenue: CurrencyAmounts
    pending_amount: CurrencyAmounts
    average_transaction_value: CurrencyAmounts
    transaction_count: int
    refund_rate: float


class RefundCreate(BaseModel):
    transaction_id: str
    amount: Decimal = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=500)


class RefundReject(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class RefundResponse(BaseModel):
    id: str
    transaction_id: str
    amount: float
    currency: str
    reason: str
    status: str
    requested_by: str
    requested_at: datetime
    processed_at: Optional[datetime]
    processed_by: Optional[str]
    notes: Optional[str]

    model_config = {"from_attributes": True}


class ExchangeRateUpdate(BaseModel):
    from_currency: Currency
    to_currency: Currency
    rate: Decimal = Field(..., gt=0)
    source: Optional[str] = Field(None, max_length=100)


class ExchangeRateResponse(BaseModel):
    from_currency: str
    to_currency: str
    rate: float
    source: Optional[str]
    last_updated: datetime

    model_config = {"from_attributes": True}


class ConversionResponse(BaseModel):
    amount: float
    from_currency: str
    to_currency: str
    converted: float
