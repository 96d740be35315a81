"""Exam schedule registry and the per-day subject category rule."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import audit, models, schemas
from ..errors import ConflictError, NotFoundError, ValidationError
from ..vocab import AuditAction, EntityType, ExamClass, SubjectCategory

# purpose: hold the exam calendar per center and derive the subject category
#   that selects a day's time windows
# inputs: schedule payloads from administrators
# outputs: ScheduleEntry rows, category lookups, exam-day status
# status: active

logger = logging.getLogger(__name__)

# Any VOCATIONAL paper on a date makes the whole date VOCATIONAL, which opens
# the packing and delivery windows an hour earlier for every center.
VOCATIONAL_WINS = "VOCATIONAL_WINS"
CATEGORY_RULE = VOCATIONAL_WINS

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIMES = {
    SubjectCategory.CORE: "12:00",
    SubjectCategory.VOCATIONAL: "11:00",
}


@dataclass(frozen=True)
class ExamDayStatus:
    is_exam_day: bool
    next_exam_date: date | None = None
    today_schedules: list[models.ScheduleEntry] = field(default_factory=list)


@dataclass(frozen=True)
class BulkResult:
    created: list[models.ScheduleEntry]
    skipped: int


def schedule_for(db: Session, exam_date: date) -> list[models.ScheduleEntry]:
    """Active entries for ``exam_date`` across all centers."""

    return (
        db.query(models.ScheduleEntry)
        .filter(
            models.ScheduleEntry.exam_date == exam_date,
            models.ScheduleEntry.is_active.is_(True),
        )
        .order_by(models.ScheduleEntry.exam_class.asc(), models.ScheduleEntry.subject.asc())
        .all()
    )


def category_for(db: Session, exam_date: date) -> SubjectCategory:
    entries = schedule_for(db, exam_date)
    if any(entry.category == SubjectCategory.VOCATIONAL for entry in entries):
        return SubjectCategory.VOCATIONAL
    return SubjectCategory.CORE


def _require_active_center(db: Session, center_id: UUID) -> models.ExamCenter:
    center = db.get(models.ExamCenter, center_id)
    if not center or not center.is_active:
        raise ValidationError("Exam center does not exist or is inactive")
    return center


def _find_duplicate(
    db: Session,
    *,
    center_id: UUID,
    exam_date: date,
    exam_class: ExamClass,
    subject: str,
    exclude_id: UUID | None = None,
) -> models.ScheduleEntry | None:
    query = db.query(models.ScheduleEntry).filter(
        models.ScheduleEntry.center_id == center_id,
        models.ScheduleEntry.exam_date == exam_date,
        models.ScheduleEntry.exam_class == exam_class,
        models.ScheduleEntry.subject == subject,
    )
    if exclude_id is not None:
        query = query.filter(models.ScheduleEntry.id != exclude_id)
    # an active duplicate wins over a deactivated one for the error message
    return query.order_by(models.ScheduleEntry.is_active.desc()).first()


def _raise_duplicate(existing: models.ScheduleEntry) -> None:
    if existing.is_active:
        raise ConflictError(
            f"{existing.subject} is already scheduled for {existing.exam_class.value} "
            f"on {existing.exam_date.isoformat()} at this center"
        )
    raise ConflictError(
        "A deactivated schedule entry exists for this center, date, class and subject; "
        "reactivate it instead"
    )


def create(
    db: Session,
    payload: schemas.ScheduleCreate,
    *,
    actor: models.User,
    source_address: str | None = None,
) -> models.ScheduleEntry:
    _require_active_center(db, payload.center_id)
    subject = payload.subject.strip()
    existing = _find_duplicate(
        db,
        center_id=payload.center_id,
        exam_date=payload.exam_date,
        exam_class=payload.exam_class,
        subject=subject,
    )
    if existing:
        _raise_duplicate(existing)

    entry = models.ScheduleEntry(
        exam_date=payload.exam_date,
        exam_class=payload.exam_class,
        subject=subject,
        category=payload.category,
        center_id=payload.center_id,
        start_time=payload.start_time or DEFAULT_START_TIME,
        end_time=payload.end_time or DEFAULT_END_TIMES[payload.category],
        is_active=True,
        created_by=actor.id,
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Schedule entry already exists for this center, date, class and subject")
    audit.append(
        db,
        AuditAction.SCHEDULE_CREATED,
        EntityType.SCHEDULE,
        entry.id,
        actor_id=actor.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(entry)
    logger.info("Schedule %s created for center %s on %s", entry.id, entry.center_id, entry.exam_date)
    return entry


def create_bulk(
    db: Session,
    payloads: list[schemas.ScheduleCreate],
    *,
    actor: models.User,
    source_address: str | None = None,
) -> BulkResult:
    created: list[models.ScheduleEntry] = []
    skipped = 0
    for payload in payloads:
        try:
            created.append(create(db, payload, actor=actor, source_address=source_address))
        except ConflictError:
            skipped += 1
    return BulkResult(created=created, skipped=skipped)


def list_entries(
    db: Session,
    *,
    exam_date: date | None = None,
    center_id: UUID | None = None,
    exam_class: ExamClass | None = None,
    include_inactive: bool = False,
) -> list[models.ScheduleEntry]:
    query = db.query(models.ScheduleEntry)
    if exam_date:
        query = query.filter(models.ScheduleEntry.exam_date == exam_date)
    if center_id:
        query = query.filter(models.ScheduleEntry.center_id == center_id)
    if exam_class:
        query = query.filter(models.ScheduleEntry.exam_class == exam_class)
    if not include_inactive:
        query = query.filter(models.ScheduleEntry.is_active.is_(True))
    return query.order_by(
        models.ScheduleEntry.exam_date.asc(),
        models.ScheduleEntry.exam_class.asc(),
        models.ScheduleEntry.subject.asc(),
    ).all()


def get_entry(db: Session, entry_id: UUID) -> models.ScheduleEntry:
    entry = db.get(models.ScheduleEntry, entry_id)
    if not entry:
        raise NotFoundError("Schedule entry", entry_id)
    return entry


def update_entry(
    db: Session,
    entry_id: UUID,
    payload: schemas.ScheduleUpdate,
    *,
    actor: models.User,
    source_address: str | None = None,
) -> models.ScheduleEntry:
    entry = get_entry(db, entry_id)
    changes = payload.model_dump(exclude_unset=True)
    if "subject" in changes and changes["subject"] is not None:
        changes["subject"] = changes["subject"].strip()

    center_id = changes.get("center_id") or entry.center_id
    will_be_active = changes.get("is_active", entry.is_active)
    if will_be_active or "center_id" in changes:
        _require_active_center(db, center_id)

    if will_be_active:
        existing = _find_duplicate(
            db,
            center_id=center_id,
            exam_date=changes.get("exam_date") or entry.exam_date,
            exam_class=changes.get("exam_class") or entry.exam_class,
            subject=changes.get("subject") or entry.subject,
            exclude_id=entry.id,
        )
        if existing:
            _raise_duplicate(existing)

    for key, value in changes.items():
        if value is not None:
            setattr(entry, key, value)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Schedule entry already exists for this center, date, class and subject")
    audit.append(
        db,
        AuditAction.SCHEDULE_UPDATED,
        EntityType.SCHEDULE,
        entry.id,
        actor_id=actor.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(entry)
    return entry


def deactivate_entry(
    db: Session,
    entry_id: UUID,
    *,
    actor: models.User,
    source_address: str | None = None,
) -> models.ScheduleEntry:
    entry = get_entry(db, entry_id)
    entry.is_active = False
    audit.append(
        db,
        AuditAction.SCHEDULE_DEACTIVATED,
        EntityType.SCHEDULE,
        entry.id,
        actor_id=actor.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(entry)
    return entry


def is_active_day_for(db: Session, center_id: UUID, today: date) -> ExamDayStatus:
    todays = (
        db.query(models.ScheduleEntry)
        .filter(
            models.ScheduleEntry.center_id == center_id,
            models.ScheduleEntry.exam_date == today,
            models.ScheduleEntry.is_active.is_(True),
        )
        .order_by(models.ScheduleEntry.exam_class.asc(), models.ScheduleEntry.subject.asc())
        .all()
    )
    if todays:
        return ExamDayStatus(is_exam_day=True, next_exam_date=today, today_schedules=todays)

    upcoming = (
        db.query(models.ScheduleEntry)
        .filter(
            models.ScheduleEntry.center_id == center_id,
            models.ScheduleEntry.exam_date > today,
            models.ScheduleEntry.is_active.is_(True),
        )
        .order_by(models.ScheduleEntry.exam_date.asc())
        .first()
    )
    return ExamDayStatus(
        is_exam_day=False,
        next_exam_date=upcoming.exam_date if upcoming else None,
    )


def center_for_superintendent(db: Session, user_id: UUID) -> models.ExamCenter | None:
    return (
        db.query(models.ExamCenter)
        .filter(
            models.ExamCenter.superintendent_id == user_id,
            models.ExamCenter.is_active.is_(True),
        )
        .first()
    )
