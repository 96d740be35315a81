from uuid import UUID
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_roles
from ..dependencies import client_address
from ..errors import NotFoundError
from ..services import device_binding
from ..vocab import UserRole
from .. import models, schemas

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/", response_model=list[schemas.UserOut])
async def list_users(
    role: UserRole | None = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    query = db.query(models.User)
    if role:
        query = query.filter(models.User.role == role)
    return query.order_by(models.User.name.asc()).all()


@router.post("/{user_id}/reset-device", response_model=schemas.UserOut)
async def reset_device(
    user_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    target = db.get(models.User, user_id)
    if not target:
        raise NotFoundError("User", user_id)
    return device_binding.reset(db, target, user, source_address=client_address(request))
