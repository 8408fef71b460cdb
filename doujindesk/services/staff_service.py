"""
Staff operations: task board, shift roster and incident reports.

Lifecycles:
  task      pending -> in_progress (on assignment) -> completed
            pending | in_progress -> cancelled
  shift     scheduled -> confirmed (check-in) -> completed (check-out)
            scheduled -> no_show | cancelled
  incident  open -> in_progress (on assignment) -> resolved -> closed

A move out of any other state is a 409. Completed tasks, completed shifts
and closed incidents are never edited again.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from doujindesk.models.staff import StaffTask, Shift, Incident
from doujindesk.models.user import User
from doujindesk.schemas.staff import (
    TaskCreate,
    TaskUpdate,
    TaskComplete,
    ShiftCreate,
    ShiftUpdate,
    IncidentCreate,
)
from doujindesk.services.ids import make_id
from doujindesk.db.base import as_utc, utcnow
from doujindesk.core.security import StaffIdentity
from doujindesk.core.logging import get_logger
from doujindesk.core.metrics import incidents_reported, shifts_closed

logger = get_logger(__name__)

OPEN_TASK_STATUSES = ("pending", "in_progress")
HOURS = Decimal("0.01")


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def _not_found(kind: str, record_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} {record_id} not found")


async def _require_staff(db: AsyncSession, staff_ids: list[int]) -> None:
    wanted = set(staff_ids)
    result = await db.execute(select(User.id).where(User.id.in_(wanted), User.is_active.is_(True)))
    missing = wanted - set(result.scalars().all())
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown or inactive staff accounts: {sorted(missing)}",
        )


# Tasks

async def add_task(db: AsyncSession, data: TaskCreate, created_by: int) -> StaffTask:
    assignees = list(dict.fromkeys(data.assigned_to))
    if assignees:
        await _require_staff(db, assignees)

    task = StaffTask(
        id=make_id("task"),
        status="in_progress" if assignees else "pending",
        assigned_by=created_by if assignees else None,
        **data.model_dump(exclude={"assigned_to"}),
        assigned_to=assignees,
    )
    db.add(task)
    await db.flush()
    await db.refresh(task)

    logger.info("task_created", task_id=task.id, priority=task.priority, assignees=assignees)
    return task


async def get_task(db: AsyncSession, task_id: str) -> StaffTask:
    task = (await db.execute(select(StaffTask).where(StaffTask.id == task_id))).scalar_one_or_none()
    if not task:
        raise _not_found("Task", task_id)
    return task


async def list_tasks(
    db: AsyncSession,
    task_status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    assignee: Optional[int] = None,
    search: Optional[str] = None,
    overdue: bool = False,
    skip: int = 0,
    limit: int = 100,
) -> list[StaffTask]:
    """
    Filter the task board, most urgent due date first. `overdue` keeps open
    tasks whose due time has passed.
    """
    query = select(StaffTask)
    if task_status:
        query = query.where(StaffTask.status == task_status)
    if priority:
        query = query.where(StaffTask.priority == priority)
    if category:
        query = query.where(StaffTask.category == category)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(StaffTask.title.ilike(pattern), StaffTask.description.ilike(pattern)))
    if overdue:
        query = query.where(StaffTask.status.in_(OPEN_TASK_STATUSES), StaffTask.due_at < utcnow())

    result = await db.execute(query.order_by(StaffTask.due_at.is_(None), StaffTask.due_at, StaffTask.id))
    tasks = list(result.scalars().all())
    # Assignees are a JSON list; membership is checked here rather than per backend
    if assignee is not None:
        tasks = [task for task in tasks if assignee in (task.assigned_to or [])]
    return tasks[skip:skip + limit]


async def update_task(db: AsyncSession, task_id: str, updates: TaskUpdate) -> StaffTask:
    task = await get_task(db, task_id)
    if task.status not in OPEN_TASK_STATUSES:
        raise _conflict(f"Task {task_id} is already {task.status}")

    changes = updates.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(task, field, value)
    task.updated_at = utcnow()

    await db.flush()
    await db.refresh(task)
    logger.info("task_updated", task_id=task_id, fields=sorted(changes))
    return task


async def delete_task(db: AsyncSession, task_id: str) -> None:
    await get_task(db, task_id)
    await db.execute(delete(StaffTask).where(StaffTask.id == task_id))
    await db.flush()
    logger.info("task_deleted", task_id=task_id)


async def assign_task(db: AsyncSession, task_id: str, staff_ids: list[int], assigned_by: int) -> StaffTask:
    """Replace the assignee list. A pending task moves to in_progress."""
    task = await get_task(db, task_id)
    if task.status not in OPEN_TASK_STATUSES:
        raise _conflict(f"Task {task_id} is already {task.status}")

    assignees = list(dict.fromkeys(staff_ids))
    await _require_staff(db, assignees)

    task.assigned_to = assignees
    task.assigned_by = assigned_by
    task.status = "in_progress"
    task.updated_at = utcnow()

    await db.flush()
    await db.refresh(task)
    logger.info("task_assigned", task_id=task_id, assignees=assignees, assigned_by=assigned_by)
    return task


async def complete_task(db: AsyncSession, task_id: str, completed_by: int, data: TaskComplete) -> StaffTask:
    task = await get_task(db, task_id)
    if task.status not in OPEN_TASK_STATUSES:
        raise _conflict(f"Task {task_id} is already {task.status}")

    task.status = "completed"
    task.completed_at = utcnow()
    task.completed_by = completed_by
    task.actual_hours = data.actual_hours
    if data.notes is not None:
        task.notes = data.notes
    task.updated_at = task.completed_at

    await db.flush()
    await db.refresh(task)
    logger.info("task_completed", task_id=task_id, completed_by=completed_by)
    return task


async def cancel_task(db: AsyncSession, task_id: str) -> StaffTask:
    task = await get_task(db, task_id)
    if task.status not in OPEN_TASK_STATUSES:
        raise _conflict(f"Task {task_id} is already {task.status}")

    task.status = "cancelled"
    task.updated_at = utcnow()
    await db.flush()
    await db.refresh(task)
    logger.info("task_cancelled", task_id=task_id)
    return task


# Shifts

def _hours(span: timedelta) -> Decimal:
    return (Decimal(str(span.total_seconds())) / 3600).quantize(HOURS, rounding=ROUND_HALF_UP)


def worked_hours(shift: Shift, checked_in_at: datetime, checked_out_at: datetime) -> tuple[Decimal, Decimal]:
    """
    Hours on site minus the scheduled break, and the overtime beyond the
    scheduled length (also net of the break). Neither goes below zero.
    """
    pause = timedelta(minutes=shift.break_minutes or 0)
    actual = max(_hours(as_utc(checked_out_at) - as_utc(checked_in_at) - pause), Decimal("0"))
    scheduled = max(_hours(as_utc(shift.ends_at) - as_utc(shift.starts_at) - pause), Decimal("0"))
    return actual, max(actual - scheduled, Decimal("0"))


async def add_shift(db: AsyncSession, data: ShiftCreate) -> Shift:
    await _require_staff(db, [data.staff_id])

    shift = Shift(id=make_id("shift"), status="scheduled", **data.model_dump())
    db.add(shift)
    await db.flush()
    await db.refresh(shift)

    logger.info("shift_scheduled", shift_id=shift.id, staff_id=shift.staff_id, position=shift.position)
    return shift


async def get_shift(db: AsyncSession, shift_id: str) -> Shift:
    shift = (await db.execute(select(Shift).where(Shift.id == shift_id))).scalar_one_or_none()
    if not shift:
        raise _not_found("Shift", shift_id)
    return shift


async def list_shifts(
    db: AsyncSession,
    staff_id: Optional[int] = None,
    on_date: Optional[date] = None,
    shift_status: Optional[str] = None,
    position: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Shift]:
    """Roster ordered by start time. `on_date` is a UTC calendar day."""
    query = select(Shift)
    if staff_id is not None:
        query = query.where(Shift.staff_id == staff_id)
    if on_date is not None:
        day_start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
        query = query.where(Shift.starts_at >= day_start, Shift.starts_at < day_start + timedelta(days=1))
    if shift_status:
        query = query.where(Shift.status == shift_status)
    if position:
        query = query.where(Shift.position == position)

    result = await db.execute(query.order_by(Shift.starts_at, Shift.id).offset(skip).limit(limit))
    return list(result.scalars().all())


async def update_shift(db: AsyncSession, shift_id: str, updates: ShiftUpdate) -> Shift:
    shift = await get_shift(db, shift_id)
    if shift.status != "scheduled":
        raise _conflict(f"Shift {shift_id} is {shift.status} and can no longer be rescheduled")

    changes = updates.model_dump(exclude_unset=True, exclude_none=True)
    starts_at = as_utc(changes.get("starts_at", shift.starts_at))
    ends_at = as_utc(changes.get("ends_at", shift.ends_at))
    if ends_at <= starts_at:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="ends_at must be after starts_at",
        )

    for field, value in changes.items():
        setattr(shift, field, value)
    shift.updated_at = utcnow()

    await db.flush()
    await db.refresh(shift)
    logger.info("shift_updated", shift_id=shift_id, fields=sorted(changes))
    return shift


async def delete_shift(db: AsyncSession, shift_id: str) -> None:
    shift = await get_shift(db, shift_id)
    if shift.status == "completed":
        raise _conflict(f"Shift {shift_id} is completed; its hours are kept")

    await db.execute(delete(Shift).where(Shift.id == shift_id))
    await db.flush()
    logger.info("shift_deleted", shift_id=shift_id)


def _check_owner(shift: Shift, actor: StaffIdentity) -> None:
    if shift.staff_id != actor.id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the assigned staff member or an admin can clock this shift",
        )


async def check_in(db: AsyncSession, shift_id: str, actor: StaffIdentity, at: Optional[datetime] = None) -> Shift:
    shift = await get_shift(db, shift_id)
    _check_owner(shift, actor)
    if shift.status != "scheduled":
        raise _conflict(f"Shift {shift_id} is {shift.status}, not scheduled")

    shift.status = "confirmed"
    shift.checked_in_at = at or utcnow()
    shift.updated_at = utcnow()

    await db.flush()
    await db.refresh(shift)
    logger.info("shift_checked_in", shift_id=shift_id, staff_id=shift.staff_id, by=actor.id)
    return shift


async def check_out(db: AsyncSession, shift_id: str, actor: StaffIdentity, at: Optional[datetime] = None) -> Shift:
    shift = await get_shift(db, shift_id)
    _check_owner(shift, actor)
    if shift.status != "confirmed":
        raise _conflict(f"Shift {shift_id} is {shift.status}; check in first")

    checked_out_at = at or utcnow()
    if as_utc(checked_out_at) <= as_utc(shift.checked_in_at):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Check-out must be after check-in",
        )

    shift.actual_hours, shift.overtime_hours = worked_hours(shift, shift.checked_in_at, checked_out_at)
    shift.checked_out_at = checked_out_at
    shift.status = "completed"
    shift.updated_at = utcnow()

    await db.flush()
    await db.refresh(shift)

    shifts_closed.labels(status="completed").inc()
    logger.info(
        "shift_checked_out",
        shift_id=shift_id,
        staff_id=shift.staff_id,
        actual_hours=str(shift.actual_hours),
        overtime_hours=str(shift.overtime_hours),
    )
    return shift


async def close_shift(db: AsyncSession, shift_id: str, outcome: str, notes: Optional[str] = None) -> Shift:
    """Mark a scheduled shift as a no-show or cancel it."""
    shift = await get_shift(db, shift_id)
    if shift.status != "scheduled":
        raise _conflict(f"Shift {shift_id} is {shift.status}, not scheduled")

    shift.status = outcome
    if notes is not None:
        shift.notes = notes
    shift.updated_at = utcnow()

    await db.flush()
    await db.refresh(shift)

    shifts_closed.labels(status=outcome).inc()
    logger.info("shift_closed", shift_id=shift_id, status=outcome)
    return shift


# Incidents

async def report_incident(db: AsyncSession, data: IncidentCreate, reported_by: int) -> Incident:
    incident = Incident(
        id=make_id("inc"),
        status="open",
        reported_by=reported_by,
        reported_at=utcnow(),
        **data.model_dump(),
    )
    db.add(incident)
    await db.flush()
    await db.refresh(incident)

    incidents_reported.labels(severity=incident.severity).inc()
    log = logger.warning if incident.severity in ("high", "critical") else logger.info
    log(
        "incident_reported",
        incident_id=incident.id,
        severity=incident.severity,
        category=incident.category,
        location=incident.location,
    )
    return incident


async def get_incident(db: AsyncSession, incident_id: str) -> Incident:
    incident = (await db.execute(select(Incident).where(Incident.id == incident_id))).scalar_one_or_none()
    if not incident:
        raise _not_found("Incident", incident_id)
    return incident


async def list_incidents(
    db: AsyncSession,
    severity: Optional[str] = None,
    incident_status: Optional[str] = None,
    category: Optional[str] = None,
    assigned_to: Optional[int] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[Incident]:
    query = select(Incident)
    if severity:
        query = query.where(Incident.severity == severity)
    if incident_status:
        query = query.where(Incident.status == incident_status)
    if category:
        query = query.where(Incident.category == category)
    if assigned_to is not None:
        query = query.where(Incident.assigned_to == assigned_to)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Incident.title.ilike(pattern),
                Incident.description.ilike(pattern),
                Incident.location.ilike(pattern),
            )
        )

    result = await db.execute(
        query.order_by(Incident.reported_at.desc(), Incident.id.desc()).offset(skip).limit(limit)
    )
    return list(result.scalars().all())


async def assign_incident(db: AsyncSession, incident_id: str, staff_id: int) -> Incident:
    """Hand an open incident to a staff member. Reassigning one in progress is allowed."""
    incident = await get_incident(db, incident_id)
    if incident.status not in ("open", "in_progress"):
        raise _conflict(f"Incident {incident_id} is already {incident.status}")

    await _require_staff(db, [staff_id])
    incident.assigned_to = staff_id
    incident.status = "in_progress"
    incident.updated_at = utcnow()

    await db.flush()
    await db.refresh(incident)
    logger.info("incident_assigned", incident_id=incident_id, assigned_to=staff_id)
    return incident


async def resolve_incident(
    db: AsyncSession,
    incident_id: str,
    resolution: str,
    actor: StaffIdentity,
    follow_up_required: Optional[bool] = None,
) -> Incident:
    incident = await get_incident(db, incident_id)
    if incident.status != "in_progress":
        raise _conflict(f"Incident {incident_id} is {incident.status}; only assigned incidents can be resolved")
    if incident.assigned_to != actor.id and not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the assignee or an admin can resolve this incident",
        )

    incident.status = "resolved"
    incident.resolution = resolution
    incident.resolved_by = actor.id
    incident.resolved_at = utcnow()
    if follow_up_required is not None:
        incident.follow_up_required = follow_up_required
    incident.updated_at = incident.resolved_at

    await db.flush()
    await db.refresh(incident)
    logger.info("incident_resolved", incident_id=incident_id, resolved_by=actor.id)
    return incident


async def close_incident(db: AsyncSession, incident_id: str) -> Incident:
    incident = await get_incident(db, incident_id)
    if incident.status != "resolved":
        raise _conflict(f"Incident {incident_id} is {incident.status}; resolve it before closing")

    incident.status = "closed"
    incident.updated_at = utcnow()
    await db.flush()
    await db.refresh(incident)
    logger.info("incident_closed", incident_id=incident_id)
    return incident
