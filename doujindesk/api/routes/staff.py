"""
Staff operations endpoints: task board, shift roster and incident reports.

Any staff account reads the board and reports incidents. Creating and
assigning work, scheduling shifts and closing incidents are admin only.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from doujindesk.db.session import get_db
from doujindesk.schemas.staff import (
    Priority,
    TaskCategory,
    TaskStatus,
    ShiftStatus,
    IncidentCategory,
    IncidentStatus,
    TaskCreate,
    TaskUpdate,
    TaskAssign,
    TaskComplete,
    TaskResponse,
    ShiftCreate,
    ShiftUpdate,
    ShiftClock,
    ShiftClose,
    ShiftResponse,
    IncidentCreate,
    IncidentAssign,
    IncidentResolve,
    IncidentResponse,
)
from doujindesk.services import staff_service
from doujindesk.core.security import StaffIdentity, get_current_staff, get_current_user_id, require_admin

router = APIRouter(prefix="/staff", tags=["Staff"])


# Tasks

@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task: TaskCreate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.add_task(db, task, admin_id)


@router.get("/tasks", response_model=list[TaskResponse])
async def list_tasks(
    task_status: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[Priority] = None,
    category: Optional[TaskCategory] = None,
    assignee: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=100),
    overdue: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.list_tasks(
        db, task_status, priority, category, assignee, search, overdue, skip, limit
    )


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.get_task(db, task_id)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    updates: TaskUpdate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.update_task(db, task_id, updates)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await staff_service.delete_task(db, task_id)


@router.post("/tasks/{task_id}/assign", response_model=TaskResponse)
async def assign_task(
    task_id: str,
    assignment: TaskAssign,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.assign_task(db, task_id, assignment.staff_ids, admin_id)


@router.post("/tasks/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: str,
    completion: TaskComplete,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.complete_task(db, task_id, user_id, completion)


@router.post("/tasks/{task_id}/cancel", response_model=TaskResponse)
async def cancel_task(
    task_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.cancel_task(db, task_id)


# Shifts

@router.post("/shifts", response_model=ShiftResponse, status_code=status.HTTP_201_CREATED)
async def schedule_shift(
    shift: ShiftCreate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.add_shift(db, shift)


@router.get("/shifts", response_model=list[ShiftResponse])
async def list_shifts(
    staff_id: Optional[int] = None,
    on_date: Optional[date] = Query(None, alias="date"),
    shift_status: Optional[ShiftStatus] = Query(None, alias="status"),
    position: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.list_shifts(db, staff_id, on_date, shift_status, position, skip, limit)


@router.get("/shifts/{shift_id}", response_model=ShiftResponse)
async def get_shift(
    shift_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.get_shift(db, shift_id)


@router.patch("/shifts/{shift_id}", response_model=ShiftResponse)
async def update_shift(
    shift_id: str,
    updates: ShiftUpdate,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.update_shift(db, shift_id, updates)


@router.delete("/shifts/{shift_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_shift(
    shift_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await staff_service.delete_shift(db, shift_id)


@router.post("/shifts/{shift_id}/check-in", response_model=ShiftResponse)
async def check_in(
    shift_id: str,
    clock: Optional[ShiftClock] = None,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.check_in(db, shift_id, staff, clock.at if clock else None)


@router.post("/shifts/{shift_id}/check-out", response_model=ShiftResponse)
async def check_out(
    shift_id: str,
    clock: Optional[ShiftClock] = None,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.check_out(db, shift_id, staff, clock.at if clock else None)


@router.post("/shifts/{shift_id}/close", response_model=ShiftResponse)
async def close_shift(
    shift_id: str,
    closing: ShiftClose,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.close_shift(db, shift_id, closing.status, closing.notes)


# Incidents

@router.post("/incidents", response_model=IncidentResponse, status_code=status.HTTP_201_CREATED)
async def report_incident(
    incident: IncidentCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.report_incident(db, incident, user_id)


@router.get("/incidents", response_model=list[IncidentResponse])
async def list_incidents(
    severity: Optional[Priority] = None,
    incident_status: Optional[IncidentStatus] = Query(None, alias="status"),
    category: Optional[IncidentCategory] = None,
    assigned_to: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.list_incidents(
        db, severity, incident_status, category, assigned_to, search, skip, limit
    )


@router.get("/incidents/{incident_id}", response_model=IncidentResponse)
async def get_incident(
    incident_id: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.get_incident(db, incident_id)


@router.post("/incidents/{incident_id}/assign", response_model=IncidentResponse)
async def assign_incident(
    incident_id: str,
    assignment: IncidentAssign,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.assign_incident(db, incident_id, assignment.staff_id)


@router.post("/incidents/{incident_id}/resolve", response_model=IncidentResponse)
async def resolve_incident(
    incident_id: str,
    resolution: IncidentResolve,
    staff: StaffIdentity = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.resolve_incident(
        db, incident_id, resolution.resolution, staff, resolution.follow_up_required
    )


@router.post("/incidents/{incident_id}/close", response_model=IncidentResponse)
async def close_incident(
    incident_id: str,
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await staff_service.close_incident(db, incident_id)
