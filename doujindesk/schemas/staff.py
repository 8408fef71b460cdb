"""
Pydantic schemas for staff tasks, shifts and incidents.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field, model_validator

Priority = Literal["low", "medium", "high", "critical"]
TaskCategory = Literal["setup", "operations", "security", "customer_service", "cleanup", "emergency"]
TaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]
ShiftStatus = Literal["scheduled", "confirmed", "completed", "no_show", "cancelled"]
IncidentCategory = Literal["safety", "security", "technical", "customer", "staff", "equipment"]
IncidentStatus = Literal["open", "in_progress", "resolved", "closed"]


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=5000)
    category: TaskCategory
    priority: Priority = "medium"
    location: Optional[str] = Field(None, max_length=255)
    due_at: Optional[datetime] = None
    assigned_to: list[int] = Field(default_factory=list, max_length=50)
    estimated_hours: Optional[Decimal] = Field(None, gt=0, le=999)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    category: Optional[TaskCategory] = None
    priority: Optional[Priority] = None
    location: Optional[str] = Field(None, max_length=255)
    due_at: Optional[datetime] = None
    estimated_hours: Optional[Decimal] = Field(None, gt=0, le=999)
    notes: Optional[str] = Field(None, max_length=5000)


class TaskAssign(BaseModel):
    staff_ids: list[int] = Field(..., min_length=1, max_length=50)


class TaskComplete(BaseModel):
    actual_hours: Optional[Decimal] = Field(None, ge=0, le=999)
    notes: Optional[str] = Field(None, max_length=5000)


class TaskResponse(BaseModel):
    id: str
    title: str
    description: str
    category: str
    priority: str
    status: str
    location: Optional[str]
    due_at: Optional[datetime]
    assigned_to: list[int]
    assigned_by: Optional[int]
    estimated_hours: Optional[float]
    actual_hours: Optional[float]
    notes: Optional[str]
    completed_at: Optional[datetime]
    completed_by: Optional[int]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ShiftCreate(BaseModel):
    staff_id: int
    position: str = Field(..., min_length=1, max_length=100)
    location: str = Field(..., min_length=1, max_length=255)
    starts_at: datetime
    ends_at: datetime
    break_minutes: int = Field(0, ge=0, le=240)
    notes: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_order(self):
        if self.ends_at <= self.starts_at:
            raise ValueError("ends_at must be after starts_at")
        return self


class ShiftUpdate(BaseModel):
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    location: Optional[str] = Field(None, min_length=1, max_length=255)
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    break_minutes: Optional[int] = Field(None, ge=0, le=240)
    notes: Optional[str] = Field(None, max_length=2000)


class ShiftClock(BaseModel):
    """Check-in / check-out time; defaults to now."""
    at: Optional[datetime] = None


class ShiftClose(BaseModel):
    status: Literal["no_show", "cancelled"]
    notes: Optional[str] = Field(None, max_length=2000)


class ShiftResponse(BaseModel):
    id: str
    staff_id: int
    position: str
    location: str
    starts_at: datetime
    ends_at: datetime
    break_minutes: int
    status: str
    checked_in_at: Optional[datetime]
    checked_out_at: Optional[datetime]
    actual_hours: Optional[float]
    overtime_hours: Optional[float]
    notes: Optional[str]

    model_config = {"from_attributes": True}


class IncidentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    category: IncidentCategory
    severity: Priority
    location: str = Field(..., min_length=1, max_length=255)
    follow_up_required: bool = False
    witnesses: list[str] = Field(default_factory=list, max_length=20)


class IncidentAssign(BaseModel):
    staff_id: int


class IncidentResolve(BaseModel):
    resolution: str = Field(..., min_length=1, max_length=5000)
    follow_up_required: Optional[bool] = None


class IncidentResponse(BaseModel):
    id: str
    title: str
    description: str
    category: str
    severity: str
    status: str
    location: str
    reported_by: Optional[int]
    reported_at: datetime
    assigned_to: Optional[int]
    resolution: Optional[str]
    resolved_at: Optional[datetime]
    resolved_by: Optional[int]
    follow_up_required: bool
    witnesses: list[str]

    model_config = {"from_attributes": True}
