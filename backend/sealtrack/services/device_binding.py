"""Write-once binding between a courier account and one physical device."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .. import audit, models
from ..config import Settings
from ..errors import AuthorizationError, ValidationError
from ..vocab import AuditAction, EntityType, UserRole

# purpose: stop a courier's credentials from being used on a second handset
# inputs: authenticated user, device fingerprint from login or X-Device-Id
# outputs: binding on the user row, DEVICE_* audit entries
# status: active

logger = logging.getLogger(__name__)

BOUND_ROLES = frozenset({UserRole.COURIER})


def _bind_if_unbound(db: Session, user: models.User, fingerprint: str) -> bool:
    # conditional on the row still being unbound; a concurrent first login loses here
    claimed = (
        db.query(models.User)
        .filter(models.User.id == user.id, models.User.device_id.is_(None))
        .update({models.User.device_id: fingerprint}, synchronize_session=False)
    )
    db.refresh(user)
    return claimed == 1


def enforce(
    db: Session,
    user: models.User,
    fingerprint: str | None,
    settings: Settings,
    *,
    source_address: str | None = None,
) -> None:
    """Bind on first use, then require the same fingerprint forever after.

    A first binding is committed immediately; a mismatch is committed with
    its audit entry before ``AuthorizationError`` is raised.
    """

    if user.role not in BOUND_ROLES:
        return

    fingerprint = (fingerprint or "").strip()
    if not fingerprint:
        raise ValidationError("Device identifier is required")

    if settings.bypass_device_binding:
        logger.warning(
            "DEVICE BINDING BYPASSED for user %s in %s environment",
            user.id,
            settings.environment,
        )
        audit.append(
            db,
            AuditAction.DEVICE_BINDING_BYPASSED,
            EntityType.USER,
            user.id,
            actor_id=user.id,
            source_address=source_address,
        )
        db.commit()
        return

    if user.device_id is None and _bind_if_unbound(db, user, fingerprint):
        audit.append(
            db,
            AuditAction.DEVICE_BOUND,
            EntityType.USER,
            user.id,
            actor_id=user.id,
            source_address=source_address,
        )
        db.commit()
        logger.info("Bound user %s to a device", user.id)
        return

    if user.device_id != fingerprint:
        audit.append(
            db,
            AuditAction.DEVICE_MISMATCH,
            EntityType.USER,
            user.id,
            actor_id=user.id,
            source_address=source_address,
        )
        db.commit()
        logger.warning("Device mismatch for user %s from %s", user.id, source_address)
        raise AuthorizationError(
            "This account is bound to another device. Contact an administrator to reset it."
        )


def reset(
    db: Session,
    user: models.User,
    admin: models.User,
    *,
    source_address: str | None = None,
) -> models.User:
    if not admin.is_admin:
        raise AuthorizationError("Only administrators can reset device bindings")
    user.device_id = None
    audit.append(
        db,
        AuditAction.DEVICE_RESET,
        EntityType.USER,
        user.id,
        actor_id=admin.id,
        source_address=source_address,
    )
    db.commit()
    db.refresh(user)
    logger.info("Device binding for user %s reset by %s", user.id, admin.id)
    return user
