"""
Pydantic schemas for the ticket catalog, pricing quotes and sales statistics.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

from doujindesk.core.config import get_settings

settings = get_settings()

Currency = Literal["IDR", "USD"]
TicketCategory = Literal["weekend", "single_day", "vip", "special"]
TicketDay = Literal["saturday", "sunday", "both"]
AgeRestriction = Literal["adult", "all_ages"]


class TicketTypeCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-z0-9][a-z0-9_-]*$")
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=1000)
    price_idr: int = Field(..., ge=0)
    price_usd: Decimal = Field(..., ge=0, decimal_places=2)
    category: TicketCategory
    day: Optional[TicketDay] = None
    benefits: list[str] = Field(default_factory=list)
    max_quantity: int = Field(..., gt=0, le=1_000_000)
    available_quantity: Optional[int] = Field(None, ge=0)
    is_active: bool = True
    early_bird_price_idr: Optional[int] = Field(None, ge=0)
    early_bird_price_usd: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    early_bird_end_date: Optional[date] = None
    age_restriction: Optional[AgeRestriction] = None
    requires_id: bool = False

    @model_validator(mode="after")
    def check_available(self):
        if self.available_quantity is not None and self.available_quantity > self.max_quantity:
            raise ValueError("available_quantity cannot exceed max_quantity")
        return self


class TicketTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price_idr: Optional[int] = Field(None, ge=0)
    price_usd: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    category: Optional[TicketCategory] = None
    day: Optional[TicketDay] = None
    benefits: Optional[list[str]] = None
    max_quantity: Optional[int] = Field(None, gt=0, le=1_000_000)
    available_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    early_bird_price_idr: Optional[int] = Field(None, ge=0)
    early_bird_price_usd: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    early_bird_end_date: Optional[date] = None
    age_restriction: Optional[AgeRestriction] = None
    requires_id: Optional[bool] = None


class TicketTypeResponse(BaseModel):
    id: str
    name: str
    description: str
    price_idr: int
    price_usd: float
    category: str
    day: Optional[str]
    benefits: list[str]
    max_quantity: int
    available_quantity: int
    is_active: bool
    early_bird_price_idr: Optional[int]
    early_bird_price_usd: Optional[float]
    early_bird_end_date: Optional[date]
    age_restriction: Optional[str]
    requires_id: bool

    model_config = {"from_attributes": True}


class DiscountFlagsIn(BaseModel):
    is_pwd: bool = False
    is_child: bool = False
    age: Optional[int] = Field(None, ge=0, le=130)


class QuoteRequest(DiscountFlagsIn):
    ticket_type_id: str
    quantity: int = Field(1, gt=0, le=settings.MAX_TICKETS_PER_PURCHASE)
    currency: Currency = "IDR"


class DiscountApplied(BaseModel):
    type: str
    amount: float
    percentage: int

    model_config = {"from_attributes": True}


class QuoteResponse(BaseModel):
    ticket_type_id: str
    quantity: int
    currency: str
    price_idr: int
    price_usd: float
    discount_applied: Optional[DiscountApplied] = None
    early_bird: bool = False


class TypeSales(BaseModel):
    quantity: int = 0
    revenue_idr: int = 0
    revenue_usd: float = 0


class DailySales(BaseModel):
    tickets: int = 0
    revenue_idr: int = 0
    revenue_usd: float = 0


class RefundTotals(BaseModel):
    total_amount_idr: int = 0
    total_amount_usd: float = 0
    count: int = 0


class SalesStatsResponse(BaseModel):
    total_sales_idr: int
    total_sales_usd: float
    total_tickets_sold: int
    sales_by_type: dict[str, TypeSales]
    daily_sales: dict[str, DailySales]
    refunds: RefundTotals
    cached: bool = False
