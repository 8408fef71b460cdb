"""
Staff operations: tasks, shifts and incident reports.

Assignees, reporters and shift owners are staff accounts (`users.id`).
Task assignees are a JSON list since a task may go to several people.
"""

from sqlalchemy import (
    Column,
    Integer,
    Numeric,
    String,
    Text,
    Boolean,
    DateTime,
    JSON,
    ForeignKey,
    Index,
    CheckConstraint,
)

from doujindesk.db.base import Base, TimestampMixin, utcnow


class StaffTask(Base, TimestampMixin):
    __tablename__ = "staff_tasks"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(20), nullable=False)
    priority = Column(String(10), nullable=False, default="medium")
    status = Column(String(20), nullable=False, default="pending")
    location = Column(String(255), nullable=True)
    due_at = Column(DateTime(timezone=True), nullable=True)
    assigned_to = Column(JSON, nullable=False, default=list)
    assigned_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    estimated_hours = Column(Numeric(6, 2), nullable=True)
    actual_hours = Column(Numeric(6, 2), nullable=True)
    notes = Column(Text, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    completed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "category IN ('setup', 'operations', 'security', 'customer_service', 'cleanup', 'emergency')",
            name="check_task_category",
        ),
        CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="check_task_priority"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')",
            name="check_task_status",
        ),
        Index("ix_staff_tasks_status_due", "status", "due_at"),
    )

    def __repr__(self) -> str:
        return f"<StaffTask(id={self.id}, title={self.title}, status={self.status})>"


class Shift(Base, TimestampMixin):
    __tablename__ = "staff_shifts"

    id = Column(String(64), primary_key=True)
    staff_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(String(100), nullable=False)
    location = Column(String(255), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    break_minutes = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="scheduled")
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)
    actual_hours = Column(Numeric(6, 2), nullable=True)
    overtime_hours = Column(Numeric(6, 2), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="check_shift_ends_after_start"),
        CheckConstraint("break_minutes >= 0", name="check_shift_break_non_negative"),
        CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'completed', 'no_show', 'cancelled')",
            name="check_shift_status",
        ),
        Index("ix_staff_shifts_starts_at", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Shift(id={self.id}, staff_id={self.staff_id}, status={self.status})>"


class Incident(Base, TimestampMixin):
    __tablename__ = "incidents"

    id = Column(String(64), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(20), nullable=False)
    severity = Column(String(10), nullable=False)
    status = Column(String(20), nullable=False, default="open")
    location = Column(String(255), nullable=False)
    reported_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reported_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    assigned_to = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    witnesses = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint(
            "category IN ('safety', 'security', 'technical', 'customer', 'staff', 'equipment')",
            name="check_incident_category",
        ),
        CheckConstraint("severity IN ('low', 'medium', 'high', 'critical')", name="check_incident_severity"),
        CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="check_incident_status",
        ),
        Index("ix_incidents_status_severity", "status", "severity"),
    )

    def __repr__(self) -> str:
        return f"<Incident(id={self.id}, severity={self.severity}, status={self.status})>"
