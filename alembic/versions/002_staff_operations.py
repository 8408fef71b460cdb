"""Staff operations: task board, shift roster and incident reports.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _staff_ref(name: str, ondelete: str = "SET NULL", nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.Integer(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "staff_tasks",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("assigned_to", sa.JSON(), nullable=False),
        _staff_ref("assigned_by"),
        sa.Column("estimated_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("actual_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        _staff_ref("completed_by"),
        *_timestamps(),
        sa.CheckConstraint(
            "category IN ('setup', 'operations', 'security', 'customer_service', 'cleanup', 'emergency')",
            name="check_task_category",
        ),
        sa.CheckConstraint("priority IN ('low', 'medium', 'high', 'critical')", name="check_task_priority"),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'cancelled')",
            name="check_task_status",
        ),
    )
    op.create_index("ix_staff_tasks_status_due", "staff_tasks", ["status", "due_at"])

    op.create_table(
        "staff_shifts",
        sa.Column("id", sa.String(64), primary_key=True),
        _staff_ref("staff_id", ondelete="CASCADE", nullable=False),
        sa.Column("position", sa.String(100), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_out_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("overtime_hours", sa.Numeric(6, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("ends_at > starts_at", name="check_shift_ends_after_start"),
        sa.CheckConstraint("break_minutes >= 0", name="check_shift_break_non_negative"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'completed', 'no_show', 'cancelled')",
            name="check_shift_status",
        ),
    )
    op.create_index("ix_staff_shifts_staff_id", "staff_shifts", ["staff_id"])
    op.create_index("ix_staff_shifts_starts_at", "staff_shifts", ["starts_at"])

    op.create_table(
        "incidents",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("location", sa.String(255), nullable=False),
        _staff_ref("reported_by"),
        sa.Column("reported_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        _staff_ref("assigned_to"),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        _staff_ref("resolved_by"),
        sa.Column("follow_up_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("witnesses", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "category IN ('safety', 'security', 'technical', 'customer', 'staff', 'equipment')",
            name="check_incident_category",
        ),
        sa.CheckConstraint("severity IN ('low', 'medium', 'high', 'critical')", name="check_incident_severity"),
        sa.CheckConstraint(
            "status IN ('open', 'in_progress', 'resolved', 'closed')",
            name="check_incident_status",
        ),
    )
    op.create_index("ix_incidents_assigned_to", "incidents", ["assigned_to"])
    op.create_index("ix_incidents_status_severity", "incidents", ["status", "severity"])


def downgrade() -> None:
    op.drop_table("incidents")
    op.drop_table("staff_shifts")
    op.drop_table("staff_tasks")
