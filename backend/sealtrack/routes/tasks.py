from uuid import UUID
from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_roles
from ..config import Settings
from ..dependencies import Clock, client_address, get_clock, get_settings
from ..services import device_binding, ledger, tasks as task_registry
from ..vocab import CustodyEventType, TaskStatus, UserRole
from .. import models, schemas

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _visible_task(db: Session, task_id: UUID, user: models.User) -> models.Task:
    if user.is_admin:
        return task_registry.find_by_id(db, task_id)
    require_roles(user, UserRole.COURIER)
    return task_registry.find_by_id_for_courier(db, task_id, user.id)


@router.post("/", response_model=schemas.TaskOut)
async def create_task(
    task: schemas.TaskCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    return task_registry.create_task(db, task, actor=user, source_address=client_address(request))


@router.get("/", response_model=list[schemas.TaskOut])
async def list_tasks(
    status: TaskStatus | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if user.is_admin:
        return task_registry.list_tasks(db, status=status)
    require_roles(user, UserRole.COURIER)
    return task_registry.find_for_courier(db, user.id, status=status)


@router.get("/{task_id}", response_model=schemas.TaskOut)
async def get_task(
    task_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return _visible_task(db, task_id, user)


@router.post("/{task_id}/reset-for-testing", response_model=schemas.TaskOut)
async def reset_for_testing(
    task_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    return task_registry.reset_for_testing(
        db,
        task_id,
        admin=user,
        settings=settings,
        now=clock(),
        source_address=client_address(request),
    )


@router.post("/{task_id}/events", response_model=schemas.TaskEventOut)
async def submit_event(
    task_id: UUID,
    request: Request,
    event_type: CustodyEventType = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    image: UploadFile = File(...),
    x_device_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    clock: Clock = Depends(get_clock),
):
    require_roles(user, UserRole.COURIER)
    address = client_address(request)
    device_binding.enforce(db, user, x_device_id, settings, source_address=address)
    data = await image.read()
    return ledger.submit_event(
        db,
        task_id,
        ledger.EventSubmission(event_type=event_type, latitude=latitude, longitude=longitude),
        ledger.EvidenceImage(
            data=data,
            filename=image.filename or "evidence.jpg",
            content_type=image.content_type or "image/jpeg",
        ),
        actor=user,
        now=clock(),
        settings=settings,
        status_updater=task_registry.RegistryStatusUpdater(db),
        source_address=address,
    )


@router.get("/{task_id}/events", response_model=list[schemas.TaskEventOut])
async def list_events(
    task_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    task = _visible_task(db, task_id, user)
    return ledger.events_for_task(db, task.id)


@router.get("/{task_id}/allowed-event-types", response_model=schemas.AllowedEventTypesOut)
async def allowed_event_types(
    task_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    task = _visible_task(db, task_id, user)
    return schemas.AllowedEventTypesOut(task_id=task.id, allowed=ledger.allowed_event_types_for(db, task.id))
