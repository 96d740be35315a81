"""Custody task registry: creation, lookups and status writes."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, models, schemas
from ..config import Settings
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..timewindows import as_utc
from ..vocab import AuditAction, EntityType, TaskStatus, UserRole

# purpose: own the Task row and every status write on it
# inputs: admin task payloads, status requests from the event ledger
# outputs: Task rows, TASK_* audit entries
# status: active

logger = logging.getLogger(__name__)

_STATUS_ACTIONS = {
    TaskStatus.SUSPICIOUS: AuditAction.TASK_MARKED_SUSPICIOUS,
    TaskStatus.COMPLETED: AuditAction.TASK_COMPLETED,
}


def create_task(
    db: Session,
    payload: schemas.TaskCreate,
    *,
    actor: models.User,
    source_address: str | None = None,
) -> models.Task:
    """Create a PENDING task and record its creation and assignment together."""

    code = payload.code.strip()
    if db.query(models.Task.id).filter(models.Task.code == code).first():
        raise ConflictError(f"Task with sealed pack code '{code}' already exists")

    assignee = db.get(models.User, payload.assignee_id)
    if not assignee:
        raise ValidationError("Assigned user does not exist")
    if assignee.role != UserRole.COURIER:
        raise ValidationError("Tasks can only be assigned to courier users")
    if not assignee.is_active:
        raise ValidationError("Cannot assign task to an inactive user")

    start_time = as_utc(payload.start_time)
    end_time = as_utc(payload.end_time)
    if end_time <= start_time:
        raise ValidationError("End time must be after start time")

    task = models.Task(
        code=code,
        source=payload.source,
        destination=payload.destination,
        assignee_id=assignee.id,
        start_time=start_time,
        end_time=end_time,
        status=TaskStatus.PENDING,
        expected_travel_minutes=payload.expected_travel_minutes,
        is_double_shift=payload.is_double_shift,
        shift=payload.shift,
    )
    db.add(task)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Task with sealed pack code '{code}' already exists")

    for action in (AuditAction.TASK_CREATED, AuditAction.TASK_ASSIGNED):
        audit.append(
            db,
            action,
            EntityType.TASK,
            task.id,
            actor_id=actor.id,
            source_address=source_address,
        )
    db.commit()
    db.refresh(task)
    logger.info("Task %s (%s) assigned to %s", task.id, task.code, assignee.id)
    return task


def find_by_id(db: Session, task_id: UUID) -> models.Task:
    task = db.get(models.Task, task_id)
    if not task:
        raise NotFoundError("Task", task_id)
    return task


def find_for_courier(db: Session, courier_id: UUID, *, status: TaskStatus | None = None) -> list[models.Task]:
    query = db.query(models.Task).filter(models.Task.assignee_id == courier_id)
    if status:
        query = query.filter(models.Task.status == status)
    return query.order_by(models.Task.created_at.desc()).all()


def find_by_id_for_courier(db: Session, task_id: UUID, courier_id: UUID) -> models.Task:
    task = find_by_id(db, task_id)
    if task.assignee_id != courier_id:
        raise AuthorizationError("You are not assigned to this task")
    return task


def list_tasks(db: Session, *, status: TaskStatus | None = None) -> list[models.Task]:
    query = db.query(models.Task)
    if status:
        query = query.filter(models.Task.status == status)
    return query.order_by(models.Task.created_at.desc()).all()


def update_status(
    db: Session,
    task_id: UUID,
    status: TaskStatus,
    *,
    actor_id: UUID | None = None,
    source_address: str | None = None,
    commit: bool = True,
) -> models.Task:
    """Overwrite the status unconditionally and audit the change.

    With ``commit=False`` the caller owns the transaction.
    """

    task = find_by_id(db, task_id)
    previous = task.status
    task.status = status
    audit.append(
        db,
        _STATUS_ACTIONS.get(status, AuditAction.TASK_STATUS_CHANGED),
        EntityType.TASK,
        task.id,
        actor_id=actor_id,
        source_address=source_address,
    )
    if commit:
        db.commit()
        db.refresh(task)
    logger.info("Task %s status %s -> %s", task.id, previous.value, status.value)
    return task


def reset_for_testing(
    db: Session,
    task_id: UUID,
    *,
    admin: models.User,
    settings: Settings,
    now: datetime,
    source_address: str | None = None,
) -> models.Task:
    """Reopen a task's window from ``now`` for field rehearsals.

    Unavailable unless ``allow_task_reset`` is configured.
    """

    if not settings.allow_task_reset:
        raise NotFoundError("Task reset")
    if not admin.is_admin:
        raise AuthorizationError("Only administrators can reset tasks")

    task = find_by_id(db, task_id)
    start = as_utc(now)
    task.start_time = start
    task.end_time = start + timedelta(hours=settings.task_reset_hours)
    task.status = TaskStatus.IN_PROGRESS
    audit.append(
        db,
        AuditAction.TASK_RESET_FOR_TESTING,
        EntityType.TASK,
        task.id,
        actor_id=admin.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(task)
    logger.warning("Task %s reset for testing by %s", task.id, admin.id)
    return task


class RegistryStatusUpdater:
    """Status writes for the event ledger inside the ledger's transaction."""

    def __init__(self, db: Session):
        self.db = db

    def update_status(
        self,
        task_id: UUID,
        status: TaskStatus,
        *,
        actor_id: UUID | None = None,
        source_address: str | None = None,
    ) -> None:
        update_status(
            self.db,
            task_id,
            status,
            actor_id=actor_id,
            source_address=source_address,
            commit=False,
        )
