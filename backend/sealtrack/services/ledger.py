"""Custody event ledger for courier tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Protocol
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, models, storage
from ..config import Settings
from ..errors import AuthorizationError, ConflictError, NotFoundError, StateError, ValidationError
from ..timewindows import within_task_window
from ..vocab import (
    AFTERNOON_SHIFT_SEQUENCE,
    CUSTODY_SEQUENCE,
    FINAL_CLASS,
    PICKUP_CLASS,
    AuditAction,
    CustodyEventType,
    EntityType,
    Shift,
    TaskStatus,
)
from . import red_flags

# purpose: record at most one photographed, geotagged event per checkpoint of
#   a task and drive the task's status from those events
# inputs: courier submissions with evidence images
# outputs: TaskEvent rows, status writes through TaskStatusUpdater, audit entries
# status: active

logger = logging.getLogger(__name__)

ImageStore = Callable[..., tuple[str, int]]


class TaskStatusUpdater(Protocol):
    def update_status(
        self,
        task_id: UUID,
        status: TaskStatus,
        *,
        actor_id: UUID | None = None,
        source_address: str | None = None,
    ) -> None: ...


@dataclass(frozen=True)
class EventSubmission:
    event_type: CustodyEventType
    latitude: float
    longitude: float


@dataclass(frozen=True)
class EvidenceImage:
    data: bytes
    filename: str = "evidence.jpg"
    content_type: str = "image/jpeg"


def validate_coordinates(latitude: float, longitude: float) -> None:
    if not -90 <= latitude <= 90:
        raise ValidationError("Latitude must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise ValidationError("Longitude must be between -180 and 180")


def _reject(
    db: Session,
    action: AuditAction,
    actor_id: UUID,
    source_address: str | None,
    error: Exception,
) -> None:
    audit.append(
        db,
        action,
        EntityType.TASK_EVENT,
        None,
        actor_id=actor_id,
        source_address=source_address,
    )
    db.commit()
    logger.warning("%s by %s: %s", action.value, actor_id, error)
    raise error


def _recorded_types(db: Session, task_id: UUID) -> set[CustodyEventType]:
    rows = db.query(models.TaskEvent.event_type).filter(models.TaskEvent.task_id == task_id).all()
    return {row[0] for row in rows}


def submit_event(
    db: Session,
    task_id: UUID,
    submission: EventSubmission,
    image: EvidenceImage,
    *,
    actor: models.User,
    now: datetime,
    settings: Settings,
    status_updater: TaskStatusUpdater,
    source_address: str | None = None,
    store: ImageStore = storage.save_binary_payload,
) -> models.TaskEvent:
    """Validate and record one checkpoint event.

    Rejections are audited and committed before the error propagates. On
    success the event row, any status changes and every audit entry are
    committed together.
    """

    task = db.get(models.Task, task_id)
    if not task:
        raise NotFoundError("Task", task_id)

    if task.assignee_id != actor.id:
        _reject(
            db,
            AuditAction.EVENT_UPLOAD_DENIED_NOT_ASSIGNED,
            actor.id,
            source_address,
            AuthorizationError("You are not assigned to this task"),
        )

    if task.status == TaskStatus.COMPLETED:
        _reject(
            db,
            AuditAction.EVENT_REJECTED_TASK_LOCKED,
            actor.id,
            source_address,
            StateError("Task is already completed. No more events can be recorded."),
        )

    event_type = submission.event_type
    duplicate = ConflictError(f"Event type '{event_type.value}' has already been recorded for this task")
    if event_type in _recorded_types(db, task.id):
        _reject(db, AuditAction.EVENT_REJECTED_DUPLICATE, actor.id, source_address, duplicate)

    if not image.data:
        raise ValidationError("Image file is required")
    validate_coordinates(submission.latitude, submission.longitude)
    image_hash = storage.sha256_hex(image.data)

    in_window = within_task_window(now, task.start_time, task.end_time)

    image_ref, _ = store(
        image.data,
        f"{event_type.value}_{image.filename}",
        upload_dir=settings.upload_dir,
        content_type=image.content_type,
        namespace=f"task-events/{task.id}",
    )

    event = models.TaskEvent(
        task_id=task.id,
        event_type=event_type,
        image_ref=image_ref,
        image_hash=image_hash,
        latitude=submission.latitude,
        longitude=submission.longitude,
        server_timestamp=now,
    )
    db.add(event)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info(
            "Concurrent duplicate %s for task %s; stored image %s is orphaned",
            event_type.value,
            task_id,
            image_ref,
        )
        _reject(db, AuditAction.EVENT_REJECTED_DUPLICATE, actor.id, source_address, duplicate)

    if not in_window:
        status_updater.update_status(
            task.id,
            TaskStatus.SUSPICIOUS,
            actor_id=actor.id,
            source_address=source_address,
        )
        logger.warning("Event %s for task %s outside its window", event_type.value, task.id)
    else:
        red_flags.check_travel_time(
            db,
            task,
            event_type,
            now,
            updater=status_updater,
            settings=settings,
            actor_id=actor.id,
            source_address=source_address,
        )
        if event_type in PICKUP_CLASS and task.status == TaskStatus.PENDING:
            status_updater.update_status(
                task.id,
                TaskStatus.IN_PROGRESS,
                actor_id=actor.id,
                source_address=source_address,
            )
        elif event_type in FINAL_CLASS:
            status_updater.update_status(
                task.id,
                TaskStatus.COMPLETED,
                actor_id=actor.id,
                source_address=source_address,
            )

    audit.append(
        db,
        AuditAction.EVENT_UPLOADED,
        EntityType.TASK_EVENT,
        event.id,
        actor_id=actor.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(event)
    logger.info("Recorded %s for task %s", event_type.value, task.id)
    return event


def allowed_event_types_for(db: Session, task_id: UUID) -> list[CustodyEventType]:
    task = db.get(models.Task, task_id)
    if not task:
        raise NotFoundError("Task", task_id)
    sequence = CUSTODY_SEQUENCE
    if task.is_double_shift and task.shift == Shift.AFTERNOON:
        sequence = AFTERNOON_SHIFT_SEQUENCE
    recorded = _recorded_types(db, task.id)
    return [event_type for event_type in sequence if event_type not in recorded]


def events_for_task(db: Session, task_id: UUID) -> list[models.TaskEvent]:
    return (
        db.query(models.TaskEvent)
        .filter(models.TaskEvent.task_id == task_id)
        .order_by(models.TaskEvent.server_timestamp.asc())
        .all()
    )
