"""
Pydantic schemas for ticket purchases and gate validation.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field

from doujindesk.core.config import get_settings
from doujindesk.schemas.ticket import Currency, DiscountApplied, DiscountFlagsIn

settings = get_settings()

ValidationType = Literal["entry", "exit", "area_access"]


class PurchaseCreate(DiscountFlagsIn):
    ticket_type_id: str
    attendee_name: str = Field(..., min_length=1, max_length=255)
    attendee_email: EmailStr
    attendee_phone: str = Field("", max_length=50)
    attendee_id_number: Optional[str] = Field(None, max_length=100)
    quantity: int = Field(1, gt=0, le=settings.MAX_TICKETS_PER_PURCHASE)
    currency: Currency = "IDR"
    payment_method: str = Field("credit_card", max_length=50)
    special_access: list[str] = Field(default_factory=list)


class PurchaseUpdate(BaseModel):
    attendee_name: Optional[str] = Field(None, min_length=1, max_length=255)
    attendee_email: Optional[EmailStr] = None
    attendee_phone: Optional[str] = Field(None, max_length=50)
    attendee_id_number: Optional[str] = Field(None, max_length=100)
    payment_status: Optional[Literal["pending", "paid", "failed"]] = None
    special_access: Optional[list[str]] = None


class PurchaseResponse(BaseModel):
    id: str
    ticket_type_id: Optional[str]
    attendee_name: str
    attendee_email: str
    attendee_phone: str
    attendee_age: Optional[int]
    quantity: int
    total_price_idr: int
    total_price_usd: float
    currency: str
    discount_applied: Optional[DiscountApplied]
    payment_status: str
    payment_method: Optional[str]
    payment_reference: Optional[str]
    qr_code: str
    rfid_code: Optional[str]
    purchase_date: datetime
    valid_from: datetime
    valid_until: datetime
    is_used: bool
    used_at: Optional[datetime]
    entry_gate: Optional[str]
    special_access: list[str]

    model_config = {"from_attributes": True}


class ScanRequest(BaseModel):
    qr_code: str = Field(..., min_length=1)
    gate_id: str = Field(..., min_length=1, max_length=50)
    validation_type: ValidationType = "entry"


class OfflineScan(ScanRequest):
    scanned_at: datetime


class SyncRequest(BaseModel):
    scans: list[OfflineScan] = Field(..., min_length=1, max_length=500)


class ValidationResponse(BaseModel):
    id: int
    ticket_id: Optional[str]
    validation_type: str
    gate_id: str
    staff_id: str
    timestamp: datetime
    is_valid: bool
    error_reason: Optional[str]

    model_config = {"from_attributes": True}


class QRVerifyRequest(BaseModel):
    qr_code: str = Field(..., min_length=1)


class QRVerifyResponse(BaseModel):
    is_valid: bool
    ticket_id: Optional[str] = None
    event_id: Optional[str] = None
    ticket_type: Optional[str] = None
    attendee_name: Optional[str] = None
    valid_until: Optional[datetime] = None


class ScanResultResponse(BaseModel):
    is_valid: bool
    error_reason: Optional[str]
    ticket_id: Optional[str] = None
    attendee_name: Optional[str] = None
    ticket_type_id: Optional[str] = None
    validation: ValidationResponse
