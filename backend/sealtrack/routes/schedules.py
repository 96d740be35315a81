from datetime import date
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_roles
from ..config import Settings
from ..dependencies import Clock, client_address, get_clock, get_settings
from ..errors import AuthorizationError, ValidationError
from ..services import schedules as registry
from ..timewindows import is_allowed, resolve_timezone, windows_for
from ..vocab import ExamClass, TrackerEventType, UserRole
from .. import models, schemas

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


@router.get("/", response_model=list[schemas.ScheduleOut])
async def list_schedules(
    exam_date: date | None = Query(default=None, alias="date"),
    center_id: UUID | None = None,
    exam_class: ExamClass | None = None,
    include_inactive: bool = False,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return registry.list_entries(
        db,
        exam_date=exam_date,
        center_id=center_id,
        exam_class=exam_class,
        include_inactive=include_inactive and user.is_admin,
    )


@router.post("/", response_model=schemas.ScheduleOut)
async def create_schedule(
    entry: schemas.ScheduleCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    return registry.create(db, entry, actor=user, source_address=client_address(request))


@router.post("/bulk", response_model=schemas.ScheduleBulkResult)
async def create_schedules_bulk(
    payload: schemas.ScheduleBulkCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    result = registry.create_bulk(db, payload.entries, actor=user, source_address=client_address(request))
    return schemas.ScheduleBulkResult(
        created=[schemas.ScheduleOut.model_validate(entry) for entry in result.created],
        skipped=result.skipped,
    )


@router.get("/time-windows", response_model=schemas.TimeWindowsOut)
async def time_windows(
    exam_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    category = registry.category_for(db, exam_date)
    return schemas.TimeWindowsOut(
        date=exam_date,
        category=category,
        windows={slot.value: window.as_dict() for slot, window in windows_for(category).items()},
    )


@router.get("/validate-time", response_model=schemas.WindowCheckOut)
async def validate_time(
    event_type: TrackerEventType,
    exam_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    category = registry.category_for(db, exam_date)
    check = is_allowed(event_type, category, clock(), resolve_timezone(settings.window_timezone))
    return schemas.WindowCheckOut(
        allowed=check.allowed,
        window=check.window.as_dict(),
        message=check.message,
        category=category,
    )


@router.get("/exam-day-status", response_model=schemas.ExamDayStatusOut)
async def exam_day_status(
    center_id: UUID | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    if user.role == UserRole.CENTER_SUPERINTENDENT:
        center = registry.center_for_superintendent(db, user.id)
        if not center:
            return schemas.ExamDayStatusOut(is_exam_day=False)
        if center_id and center_id != center.id:
            raise AuthorizationError("You can only view your own exam center")
        center_id = center.id
    elif not center_id:
        raise ValidationError("center_id is required")
    today = clock().astimezone(resolve_timezone(settings.window_timezone)).date()
    status = registry.is_active_day_for(db, center_id, today)
    return schemas.ExamDayStatusOut(
        is_exam_day=status.is_exam_day,
        next_exam_date=status.next_exam_date,
        today_schedules=[schemas.ScheduleOut.model_validate(entry) for entry in status.today_schedules],
    )


@router.get("/{entry_id}", response_model=schemas.ScheduleOut)
async def get_schedule(
    entry_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return registry.get_entry(db, entry_id)


@router.patch("/{entry_id}", response_model=schemas.ScheduleOut)
async def update_schedule(
    entry_id: UUID,
    changes: schemas.ScheduleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    return registry.update_entry(db, entry_id, changes, actor=user, source_address=client_address(request))


@router.delete("/{entry_id}", response_model=schemas.ScheduleOut)
async def deactivate_schedule(
    entry_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    return registry.deactivate_entry(db, entry_id, actor=user, source_address=client_address(request))
