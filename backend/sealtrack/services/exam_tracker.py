"""Exam-day checkpoint ledger kept by center superintendents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, models, storage
from ..config import Settings
from ..errors import AuthorizationError, ConflictError, NotFoundError, ValidationError, WindowClosedError
from ..timewindows import TimeWindow, WindowSlot, is_allowed, resolve_timezone, windows_for
from ..vocab import AuditAction, EntityType, Shift, SubjectCategory, TrackerEventType, UserRole
from . import schedules
from .ledger import EvidenceImage, ImageStore, validate_coordinates

# purpose: one photographed checkpoint per superintendent, center, event type
#   and exam date, accepted only inside the day's clock window
# inputs: superintendent submissions with evidence images
# outputs: ExamTrackerEvent rows, TRACKER_* audit entries, per-day summaries
# status: active

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerSubmission:
    event_type: TrackerEventType
    exam_date: date
    latitude: float
    longitude: float
    shift: Shift | None = None
    captured_at: datetime | None = None


@dataclass(frozen=True)
class TrackerSummary:
    center_id: UUID
    exam_date: date
    category: SubjectCategory
    completed: list[TrackerEventType]
    pending: list[TrackerEventType]
    windows: dict[WindowSlot, TimeWindow]


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
        EntityType.TRACKER_EVENT,
        None,
        actor_id=actor_id,
        source_address=source_address,
    )
    db.commit()
    logger.warning("%s by %s: %s", action.value, actor_id, error)
    raise error


def submit_tracker_event(
    db: Session,
    submission: TrackerSubmission,
    image: EvidenceImage,
    *,
    actor: models.User,
    now: datetime,
    settings: Settings,
    source_address: str | None = None,
    store: ImageStore = storage.save_binary_payload,
) -> models.ExamTrackerEvent:
    if actor.role != UserRole.CENTER_SUPERINTENDENT:
        raise AuthorizationError("You must be a center superintendent to submit tracker events")
    center = schedules.center_for_superintendent(db, actor.id)
    if not center:
        raise AuthorizationError("You must be assigned to an exam center to submit tracker events")

    event_type = submission.event_type
    duplicate = ConflictError(
        f"Event {event_type.value} has already been submitted for {submission.exam_date.isoformat()}"
    )
    existing = (
        db.query(models.ExamTrackerEvent.id)
        .filter(
            models.ExamTrackerEvent.user_id == actor.id,
            models.ExamTrackerEvent.center_id == center.id,
            models.ExamTrackerEvent.event_type == event_type,
            models.ExamTrackerEvent.exam_date == submission.exam_date,
        )
        .first()
    )
    if existing:
        _reject(db, AuditAction.TRACKER_EVENT_REJECTED_DUPLICATE, actor.id, source_address, duplicate)

    if not image.data:
        raise ValidationError("Image is required")
    validate_coordinates(submission.latitude, submission.longitude)

    category = schedules.category_for(db, submission.exam_date)
    check = is_allowed(event_type, category, now, resolve_timezone(settings.window_timezone))
    if not check.allowed:
        _reject(
            db,
            AuditAction.TRACKER_EVENT_REJECTED_WINDOW,
            actor.id,
            source_address,
            WindowClosedError(check.message),
        )

    image_ref, _ = store(
        image.data,
        f"{event_type.value}_{image.filename}",
        upload_dir=settings.upload_dir,
        content_type=image.content_type,
        namespace=f"exam-tracker/{center.id}",
    )
    event = models.ExamTrackerEvent(
        user_id=actor.id,
        center_id=center.id,
        event_type=event_type,
        exam_date=submission.exam_date,
        shift=submission.shift or event_type.shift,
        image_ref=image_ref,
        image_hash=storage.sha256_hex(image.data),
        latitude=submission.latitude,
        longitude=submission.longitude,
        captured_at=submission.captured_at or now,
        server_timestamp=now,
    )
    db.add(event)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        _reject(db, AuditAction.TRACKER_EVENT_REJECTED_DUPLICATE, actor.id, source_address, duplicate)

    audit.append(
        db,
        AuditAction.TRACKER_EVENT_UPLOADED,
        EntityType.TRACKER_EVENT,
        event.id,
        actor_id=actor.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(event)
    logger.info("Tracker event %s recorded for center %s", event_type.value, center.id)
    return event


def events_for_center(
    db: Session, center_id: UUID, exam_date: date | None = None
) -> list[models.ExamTrackerEvent]:
    query = db.query(models.ExamTrackerEvent).filter(models.ExamTrackerEvent.center_id == center_id)
    if exam_date:
        query = query.filter(models.ExamTrackerEvent.exam_date == exam_date)
    return query.order_by(models.ExamTrackerEvent.server_timestamp.desc()).all()


def all_events(
    db: Session,
    *,
    exam_date: date | None = None,
    event_type: TrackerEventType | None = None,
    center_id: UUID | None = None,
) -> list[models.ExamTrackerEvent]:
    query = db.query(models.ExamTrackerEvent)
    if exam_date:
        query = query.filter(models.ExamTrackerEvent.exam_date == exam_date)
    if event_type:
        query = query.filter(models.ExamTrackerEvent.event_type == event_type)
    if center_id:
        query = query.filter(models.ExamTrackerEvent.center_id == center_id)
    return query.order_by(models.ExamTrackerEvent.server_timestamp.desc()).all()


def get_event(db: Session, event_id: UUID) -> models.ExamTrackerEvent:
    event = db.get(models.ExamTrackerEvent, event_id)
    if not event:
        raise NotFoundError("Event", event_id)
    return event


def event_summary(db: Session, center_id: UUID, exam_date: date) -> TrackerSummary:
    recorded = {event.event_type for event in events_for_center(db, center_id, exam_date)}
    category = schedules.category_for(db, exam_date)
    return TrackerSummary(
        center_id=center_id,
        exam_date=exam_date,
        category=category,
        completed=[event_type for event_type in TrackerEventType if event_type in recorded],
        pending=[event_type for event_type in TrackerEventType if event_type not in recorded],
        windows=windows_for(category),
    )
