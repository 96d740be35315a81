"""Travel-time red flag between pickup and arrival."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.orm import Session

from .. import audit, models
from ..config import Settings
from ..timewindows import as_utc
from ..vocab import TRANSFER_PAIR, AuditAction, CustodyEventType, EntityType, TaskStatus

if TYPE_CHECKING:
    from .ledger import TaskStatusUpdater

logger = logging.getLogger(__name__)


def travel_threshold_minutes(task: models.Task, settings: Settings) -> float:
    expected = task.expected_travel_minutes or settings.default_expected_travel_minutes
    return expected * settings.red_flag_multiplier


def check_travel_time(
    db: Session,
    task: models.Task,
    event_type: CustodyEventType,
    now: datetime,
    *,
    updater: TaskStatusUpdater,
    settings: Settings,
    actor_id: UUID | None = None,
    source_address: str | None = None,
) -> bool:
    """Mark the task SUSPICIOUS when the transfer leg took too long.

    Only the arrival half of the transfer pair is checked. Returns True when
    a red flag was raised.
    """

    departure, arrival = TRANSFER_PAIR
    if event_type != arrival:
        return False

    pickup = (
        db.query(models.TaskEvent)
        .filter(
            models.TaskEvent.task_id == task.id,
            models.TaskEvent.event_type == departure,
        )
        .first()
    )
    if not pickup:
        return False

    elapsed = (as_utc(now) - as_utc(pickup.server_timestamp)).total_seconds() / 60
    threshold = travel_threshold_minutes(task, settings)
    if elapsed <= threshold:
        return False

    updater.update_status(
        task.id,
        TaskStatus.SUSPICIOUS,
        actor_id=actor_id,
        source_address=source_address,
    )
    audit.append(
        db,
        AuditAction.RED_FLAG_TRAVEL_TIME,
        EntityType.TASK,
        task.id,
        actor_id=actor_id,
        source_address=source_address,
    )
    logger.warning(
        "Red flag on task %s: %.1f minutes in transit, threshold %.1f",
        task.id,
        elapsed,
        threshold,
    )
    return True
