from uuid import UUID
from datetime import datetime
from sqlalchemy.orm import Session
from fastapi import APIRouter, Depends
from ..database import get_db
from ..auth import get_current_user, require_roles
from ..config import Settings
from ..dependencies import get_settings
from ..vocab import UserRole
from .. import models, schemas, audit

router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/", response_model=schemas.AuditPageOut)
async def list_logs(
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    require_roles(current_user, UserRole.ADMIN)
    page = audit.find_all(db, limit=limit, offset=offset, max_limit=settings.audit_max_limit)
    return schemas.AuditPageOut(
        items=[schemas.AuditLogOut.model_validate(item) for item in page.items],
        total=page.total,
        has_more=page.has_more,
    )


@router.get("/entity/{entity_type}/{entity_id}", response_model=list[schemas.AuditLogOut])
async def logs_for_entity(
    entity_type: str,
    entity_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_roles(current_user, UserRole.ADMIN)
    return audit.find_by_entity(db, entity_type, entity_id)


@router.get("/actor/{actor_id}", response_model=list[schemas.AuditLogOut])
async def logs_for_actor(
    actor_id: UUID,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_roles(current_user, UserRole.ADMIN)
    return audit.find_by_actor(db, actor_id)


@router.get("/report", response_model=list[schemas.AuditReportItem])
async def audit_report(
    start: datetime,
    end: datetime,
    actor_id: UUID | None = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    require_roles(current_user, UserRole.ADMIN)
    return audit.summarize(db, start, end, actor_id)
