"""Append-only audit ledger.

Every other component calls into this module; it imports nothing but the
models and vocabulary so it cannot join an import cycle. No update or
delete helper exists.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import func
from . import models
from .vocab import AuditAction, EntityType


@dataclass(frozen=True)
class AuditPage:
    items: list[models.AuditLog]
    total: int
    has_more: bool


def _as_uuid(value: str | UUID | None) -> UUID | None:
    if value is None:
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def append(
    db: Session,
    action: AuditAction,
    entity_type: EntityType | str,
    entity_id: str | UUID | None = None,
    actor_id: str | UUID | None = None,
    source_address: str | None = None,
) -> models.AuditLog:
    """Insert one audit entry into the caller's transaction.

    The entry is flushed, not committed: callers commit it together with the
    state change it describes, or on its own just before raising.
    """

    log = models.AuditLog(
        actor_id=_as_uuid(actor_id),
        action=action,
        entity_type=entity_type.value if isinstance(entity_type, EntityType) else entity_type,
        entity_id=_as_uuid(entity_id),
        source_address=source_address,
        created_at=datetime.now(timezone.utc),
    )
    db.add(log)
    db.flush()
    return log


def find_all(db: Session, limit: int = 100, offset: int = 0, max_limit: int = 1000) -> AuditPage:
    safe_limit = max(1, min(limit, max_limit))
    safe_offset = max(0, offset)
    total = db.query(func.count(models.AuditLog.id)).scalar() or 0
    items = (
        db.query(models.AuditLog)
        .order_by(models.AuditLog.created_at.desc())
        .offset(safe_offset)
        .limit(safe_limit)
        .all()
    )
    return AuditPage(items=items, total=total, has_more=safe_offset + len(items) < total)


def find_by_entity(db: Session, entity_type: EntityType | str, entity_id: str | UUID) -> list[models.AuditLog]:
    type_value = entity_type.value if isinstance(entity_type, EntityType) else entity_type
    return (
        db.query(models.AuditLog)
        .filter(
            models.AuditLog.entity_type == type_value,
            models.AuditLog.entity_id == _as_uuid(entity_id),
        )
        .order_by(models.AuditLog.created_at.desc())
        .all()
    )


def find_by_actor(db: Session, actor_id: str | UUID) -> list[models.AuditLog]:
    return (
        db.query(models.AuditLog)
        .filter(models.AuditLog.actor_id == _as_uuid(actor_id))
        .order_by(models.AuditLog.created_at.desc())
        .all()
    )


def summarize(
    db: Session,
    start: datetime,
    end: datetime,
    actor_id: UUID | None = None,
):
    query = db.query(models.AuditLog).filter(
        models.AuditLog.created_at >= start,
        models.AuditLog.created_at <= end,
    )
    if actor_id:
        query = query.filter(models.AuditLog.actor_id == actor_id)
    rows = (
        query.with_entities(models.AuditLog.action, func.count(models.AuditLog.id))
        .group_by(models.AuditLog.action)
        .all()
    )
    return [{"action": r[0].value if isinstance(r[0], AuditAction) else r[0], "count": r[1]} for r in rows]
