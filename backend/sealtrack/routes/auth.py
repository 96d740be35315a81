from fastapi import APIRouter, Depends, Header, Request
import os
from sqlalchemy.orm import Session
from ..database import get_db
from .. import models, schemas, audit
from ..auth import verify_password, create_access_token, get_current_user
from ..config import Settings
from ..dependencies import client_address, get_settings
from ..errors import AuthenticationError
from ..services import device_binding
from ..vocab import AuditAction, EntityType
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"

def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
async def login(
    request: Request,
    data: schemas.LoginRequest,
    x_device_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    address = client_address(request)
    user = db.query(models.User).filter(models.User.phone == data.phone.strip()).first()
    if not user or not user.is_active or not verify_password(data.password, user.hashed_password):
        audit.append(
            db,
            AuditAction.LOGIN_FAILED,
            EntityType.USER,
            user.id if user else None,
            actor_id=user.id if user else None,
            source_address=address,
        )
        db.commit()
        raise AuthenticationError("Invalid phone number or password")

    device_binding.enforce(
        db,
        user,
        data.device_id or x_device_id,
        settings,
        source_address=address,
    )
    audit.append(db, AuditAction.LOGIN, EntityType.USER, user.id, actor_id=user.id, source_address=address)
    db.commit()
    db.refresh(user)
    token = create_access_token({"sub": str(user.id), "role": user.role.value}, settings)
    return schemas.Token(access_token=token, user=schemas.UserOut.model_validate(user))


@router.get("/me", response_model=schemas.UserOut)
async def read_me(user: models.User = Depends(get_current_user)):
    return user
