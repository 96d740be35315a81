from datetime import date, datetime
from uuid import UUID
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_roles
from ..config import Settings
from ..dependencies import Clock, client_address, get_clock, get_settings
from ..errors import AuthorizationError, ValidationError
from ..services import exam_tracker, schedules
from ..services.ledger import EvidenceImage
from ..timewindows import resolve_timezone
from ..vocab import Shift, TrackerEventType, UserRole
from .. import models, schemas

router = APIRouter(prefix="/api/exam-tracker", tags=["exam-tracker"])


def _own_center(db: Session, user: models.User) -> models.ExamCenter:
    require_roles(user, UserRole.CENTER_SUPERINTENDENT)
    center = schedules.center_for_superintendent(db, user.id)
    if not center:
        raise AuthorizationError("You must be assigned to an exam center to use question paper tracking")
    return center


def _today(clock: Clock, settings: Settings) -> date:
    return clock().astimezone(resolve_timezone(settings.window_timezone)).date()


@router.post("/events", response_model=schemas.TrackerEventOut)
async def submit_event(
    request: Request,
    event_type: TrackerEventType = Form(...),
    exam_date: date = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    shift: Shift | None = Form(default=None),
    captured_at: datetime | None = Form(default=None),
    image: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    data = await image.read()
    return exam_tracker.submit_tracker_event(
        db,
        exam_tracker.TrackerSubmission(
            event_type=event_type,
            exam_date=exam_date,
            latitude=latitude,
            longitude=longitude,
            shift=shift,
            captured_at=captured_at,
        ),
        EvidenceImage(
            data=data,
            filename=image.filename or "evidence.jpg",
            content_type=image.content_type or "image/jpeg",
        ),
        actor=user,
        now=clock(),
        settings=settings,
        source_address=client_address(request),
    )


@router.get("/events", response_model=list[schemas.TrackerEventOut])
async def my_center_events(
    exam_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    center = _own_center(db, user)
    return exam_tracker.events_for_center(db, center.id, exam_date or _today(clock, settings))


@router.get("/events/summary", response_model=schemas.TrackerSummaryOut)
async def event_summary(
    exam_date: date | None = Query(default=None, alias="date"),
    center_id: UUID | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    if user.is_admin:
        if not center_id:
            raise ValidationError("center_id is required")
    else:
        center_id = _own_center(db, user).id
    summary = exam_tracker.event_summary(db, center_id, exam_date or _today(clock, settings))
    return schemas.TrackerSummaryOut(
        center_id=summary.center_id,
        exam_date=summary.exam_date,
        category=summary.category,
        completed=summary.completed,
        pending=summary.pending,
        windows={slot.value: window.as_dict() for slot, window in summary.windows.items()},
    )


@router.get("/events/{event_id}", response_model=schemas.TrackerEventOut)
async def get_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    event = exam_tracker.get_event(db, event_id)
    if not user.is_admin and event.center_id != _own_center(db, user).id:
        raise AuthorizationError("You can only view events for your own exam center")
    return event


@router.get("/all", response_model=list[schemas.TrackerEventOut])
async def all_events(
    exam_date: date | None = Query(default=None, alias="date"),
    event_type: TrackerEventType | None = None,
    center_id: UUID | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    return exam_tracker.all_events(db, exam_date=exam_date, event_type=event_type, center_id=center_id)
