from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql
from typing import Sequence

# revision identifiers, used by Alembic.
revision: str = "20250301_01"
down_revision: str | Sequence[str] | None = None
branch_labels = None
depends_on = None


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("phone", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("role", sa.String(40), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "exam_centers",
        _uuid("id", primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("code", sa.String(50), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _uuid("superintendent_id", sa.ForeignKey("users.id"), nullable=True, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "tasks",
        _uuid("id", primary_key=True),
        sa.Column("code", sa.String(100), nullable=False, unique=True),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("destination", sa.String(), nullable=False),
        _uuid("assignee_id", sa.ForeignKey("users.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(40), nullable=False, server_default="PENDING"),
        sa.Column("expected_travel_minutes", sa.Integer(), nullable=True),
        sa.Column("is_double_shift", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("shift", sa.String(40), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])
    op.create_table(
        "task_events",
        _uuid("id", primary_key=True),
        _uuid("task_id", sa.ForeignKey("tasks.id"), nullable=False),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("image_ref", sa.String(), nullable=False),
        sa.Column("image_hash", sa.String(64), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("server_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("task_id", "event_type", name="uq_task_event_type"),
    )
    op.create_index("ix_task_events_task_id", "task_events", ["task_id"])
    op.create_table(
        "exam_tracker_events",
        _uuid("id", primary_key=True),
        _uuid("user_id", sa.ForeignKey("users.id"), nullable=False),
        _uuid("center_id", sa.ForeignKey("exam_centers.id"), nullable=False),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("exam_date", sa.Date(), nullable=False),
        sa.Column("shift", sa.String(40), nullable=False),
        sa.Column("image_ref", sa.String(), nullable=False),
        sa.Column("image_hash", sa.String(64), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("server_timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "user_id", "center_id", "event_type", "exam_date", name="uq_tracker_event_per_day"
        ),
    )
    op.create_index("ix_exam_tracker_events_center_id", "exam_tracker_events", ["center_id"])
    op.create_table(
        "exam_schedules",
        _uuid("id", primary_key=True),
        sa.Column("exam_date", sa.Date(), nullable=False),
        sa.Column("exam_class", sa.String(40), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("category", sa.String(40), nullable=False),
        _uuid("center_id", sa.ForeignKey("exam_centers.id"), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _uuid("created_by", sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "center_id",
            "exam_date",
            "exam_class",
            "subject",
            name="uq_schedule_center_date_class_subject",
        ),
    )
    op.create_index("ix_exam_schedules_exam_date", "exam_schedules", ["exam_date"])
    op.create_table(
        "audit_logs",
        _uuid("id", primary_key=True),
        _uuid("actor_id", nullable=True),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        _uuid("entity_id", nullable=True),
        sa.Column("source_address", sa.String(45), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    # the audit trail is append-only at the database level too
    op.execute("REVOKE UPDATE, DELETE ON audit_logs FROM PUBLIC")


def downgrade() -> None:
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_exam_schedules_exam_date", table_name="exam_schedules")
    op.drop_table("exam_schedules")
    op.drop_index("ix_exam_tracker_events_center_id", table_name="exam_tracker_events")
    op.drop_table("exam_tracker_events")
    op.drop_index("ix_task_events_task_id", table_name="task_events")
    op.drop_table("task_events")
    op.drop_index("ix_tasks_assignee_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("exam_centers")
    op.drop_table("users")
