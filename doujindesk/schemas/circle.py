"""
Pydantic schemas for circle applications.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, EmailStr, Field

from doujindesk.schemas.ticket import Currency

SpacePreference = Literal[
    "circle_space_1", "circle_space_2", "circle_space_4", "circle_booth_a", "circle_booth_b"
]
ApplicationStatus = Literal["pending", "under_review", "accepted", "rejected", "waitlisted"]


class CircleCreate(BaseModel):
    circle_name: str = Field(..., min_length=1, max_length=255)
    pen_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=50)
    country: Optional[str] = Field(None, max_length=100)
    genre: Optional[str] = Field(None, max_length=100)
    fandom: Optional[str] = Field(None, max_length=255)
    rating: Literal["all_ages", "r15", "r18"] = "all_ages"
    description: Optional[str] = Field(None, max_length=5000)
    website: Optional[str] = Field(None, max_length=500)
    twitter: Optional[str] = Field(None, max_length=100)
    instagram: Optional[str] = Field(None, max_length=100)
    pixiv: Optional[str] = Field(None, max_length=100)
    circle_cut_file_url: Optional[str] = Field(None, max_length=1000)
    sample_works_images: list[str] = Field(default_factory=list, max_length=10)
    space_preference: SpacePreference
    additional_table: bool = False
    additional_chair: bool = False
    additional_power: bool = False
    exhibitor_passes: int = Field(2, ge=1, le=4)
    currency: Currency = "IDR"


class CircleReview(BaseModel):
    status: Literal["under_review", "accepted", "rejected", "waitlisted"]
    notes: Optional[str] = Field(None, max_length=5000)
    booth_number: Optional[str] = Field(None, max_length=20)


class CircleResponse(BaseModel):
    id: str
    event_id: str
    circle_code: str
    circle_name: str
    pen_name: str
    email: str
    genre: Optional[str]
    fandom: Optional[str]
    rating: str
    space_preference: str
    additional_table: bool
    additional_chair: bool
    additional_power: bool
    exhibitor_passes: int
    total_amount: int
    currency: str
    payment_status: str
    application_status: str
    booth_number: Optional[str]
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CircleStats(BaseModel):
    total: int
    by_status: dict[str, int]
    by_space: dict[str, int]
    revenue_idr: int
    revenue_usd: int
