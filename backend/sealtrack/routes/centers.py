from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user, require_roles
from ..dependencies import client_address
from ..errors import ConflictError, ValidationError
from ..vocab import AuditAction, EntityType, UserRole
from .. import audit, models, schemas

router = APIRouter(prefix="/api/centers", tags=["centers"])


@router.post("/", response_model=schemas.CenterOut)
async def create_center(
    center: schemas.CenterCreate,
    request: Request,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    require_roles(user, UserRole.ADMIN)
    code = center.code.strip()
    if db.query(models.ExamCenter.id).filter(models.ExamCenter.code == code).first():
        raise ConflictError(f"Exam center '{code}' already exists")
    if center.superintendent_id:
        superintendent = db.get(models.User, center.superintendent_id)
        if not superintendent or superintendent.role != UserRole.CENTER_SUPERINTENDENT:
            raise ValidationError("Superintendent must be a center superintendent user")
        taken = (
            db.query(models.ExamCenter.id)
            .filter(models.ExamCenter.superintendent_id == center.superintendent_id)
            .first()
        )
        if taken:
            raise ConflictError("Superintendent is already assigned to another center")
    db_center = models.ExamCenter(name=center.name, code=code, superintendent_id=center.superintendent_id)
    db.add(db_center)
    db.flush()
    audit.append(
        db,
        AuditAction.CENTER_CREATED,
        EntityType.CENTER,
        db_center.id,
        actor_id=user.id,
        source_address=client_address(request),
    )
    db.commit()
    db.refresh(db_center)
    return db_center


@router.get("/", response_model=list[schemas.CenterOut])
async def list_centers(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return (
        db.query(models.ExamCenter)
        .filter(models.ExamCenter.is_active.is_(True))
        .order_by(models.ExamCenter.code.asc())
        .all()
    )
