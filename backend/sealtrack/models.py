import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Float,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base
from .vocab import (
    AuditAction,
    CustodyEventType,
    ExamClass,
    Shift,
    SubjectCategory,
    TaskStatus,
    TrackerEventType,
    UserRole,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls, name: str) -> sa.Enum:
    return sa.Enum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        length=40,
    )


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    phone = Column(String(20), unique=True, nullable=False)
    name = Column(String, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(_enum(UserRole, "user_role"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    # bound device fingerprint; written once, cleared only by an admin reset
    device_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class ExamCenter(Base):
    __tablename__ = "exam_centers"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    superintendent_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    superintendent = relationship("User")


class Task(Base):
    __tablename__ = "tasks"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code = Column(String(100), unique=True, nullable=False)
    source = Column(String, nullable=False)
    destination = Column(String, nullable=False)
    assignee_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(_enum(TaskStatus, "task_status"), nullable=False, default=TaskStatus.PENDING)
    expected_travel_minutes = Column(Integer, nullable=True)
    is_double_shift = Column(Boolean, default=False, nullable=False)
    shift = Column(_enum(Shift, "task_shift"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    assignee = relationship("User")
    events = relationship("TaskEvent", back_populates="task", order_by="TaskEvent.server_timestamp")


class TaskEvent(Base):
    __tablename__ = "task_events"
    __table_args__ = (
        sa.UniqueConstraint("task_id", "event_type", name="uq_task_event_type"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id"), nullable=False, index=True)
    event_type = Column(_enum(CustodyEventType, "custody_event_type"), nullable=False)
    image_ref = Column(String, nullable=False)
    image_hash = Column(String(64), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    server_timestamp = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    task = relationship("Task", back_populates="events")


class ExamTrackerEvent(Base):
    __tablename__ = "exam_tracker_events"
    __table_args__ = (
        sa.UniqueConstraint(
            "user_id",
            "center_id",
            "event_type",
            "exam_date",
            name="uq_tracker_event_per_day",
        ),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    center_id = Column(UUID(as_uuid=True), ForeignKey("exam_centers.id"), nullable=False, index=True)
    event_type = Column(_enum(TrackerEventType, "tracker_event_type"), nullable=False)
    exam_date = Column(Date, nullable=False)
    shift = Column(_enum(Shift, "tracker_shift"), nullable=False)
    image_ref = Column(String, nullable=False)
    image_hash = Column(String(64), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=True)
    server_timestamp = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    user = relationship("User")
    center = relationship("ExamCenter")


class ScheduleEntry(Base):
    __tablename__ = "exam_schedules"
    __table_args__ = (
        sa.UniqueConstraint(
            "center_id",
            "exam_date",
            "exam_class",
            "subject",
            name="uq_schedule_center_date_class_subject",
        ),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exam_date = Column(Date, nullable=False, index=True)
    exam_class = Column(_enum(ExamClass, "exam_class"), nullable=False)
    subject = Column(String, nullable=False)
    category = Column(_enum(SubjectCategory, "subject_category"), nullable=False)
    center_id = Column(UUID(as_uuid=True), ForeignKey("exam_centers.id"), nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    center = relationship("ExamCenter")


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    action = Column(_enum(AuditAction, "audit_action"), nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(UUID(as_uuid=True), nullable=True)
    source_address = Column(String(45), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
