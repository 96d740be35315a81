from datetime import datetime, timedelta, timezone

import pytest

from sealtrack import audit, models
from sealtrack.services import ledger, red_flags, tasks
from sealtrack.services.ledger import EventSubmission, EvidenceImage
from sealtrack.vocab import AuditAction, CustodyEventType, EntityType, TaskStatus, UserRole
from sealtrack.tests.conftest import create_task, create_user

T0 = datetime(2025, 3, 3, 8, 0, tzinfo=timezone.utc)


class RecordingUpdater:
    def __init__(self):
        self.calls = []

    def update_status(self, task_id, status, *, actor_id=None, source_address=None):
        self.calls.append((task_id, status))


def _submit(db, task, courier, settings, event_type, now):
    return ledger.submit_event(
        db,
        task.id,
        EventSubmission(event_type=event_type, latitude=26.0, longitude=91.0),
        EvidenceImage(data=b"photo"),
        actor=courier,
        now=now,
        settings=settings,
        status_updater=tasks.RegistryStatusUpdater(db),
    )


def _flagged_task(db, settings, factor: float, expected: int | None = 40):
    courier = create_user(db, UserRole.COURIER)
    task = create_task(db, courier, start=T0, end=T0 + timedelta(hours=6), expected_travel_minutes=expected)
    _submit(db, task, courier, settings, CustodyEventType.PICKUP, T0)
    minutes = (expected or settings.default_expected_travel_minutes) * factor
    _submit(db, task, courier, settings, CustodyEventType.TRANSIT, T0 + timedelta(minutes=minutes))
    db.expire_all()
    return db.get(models.Task, task.id)


def _red_flags(db, task):
    return [
        entry
        for entry in audit.find_by_entity(db, EntityType.TASK, task.id)
        if entry.action == AuditAction.RED_FLAG_TRAVEL_TIME
    ]


def test_arrival_at_1_6x_expected_escalates(db, settings):
    task = _flagged_task(db, settings, 1.6)
    assert task.status == TaskStatus.SUSPICIOUS
    assert len(_red_flags(db, task)) == 1


def test_arrival_at_1_4x_expected_does_not_escalate(db, settings):
    task = _flagged_task(db, settings, 1.4)
    assert task.status == TaskStatus.IN_PROGRESS
    assert _red_flags(db, task) == []


def test_default_expected_travel_time_applies(db, settings):
    task = _flagged_task(db, settings, 1.6, expected=None)
    assert task.status == TaskStatus.SUSPICIOUS


def test_threshold_is_strictly_greater(db, settings):
    courier = create_user(db, UserRole.COURIER)
    task = create_task(db, courier, start=T0, end=T0 + timedelta(hours=2), expected_travel_minutes=20)
    _submit(db, task, courier, settings, CustodyEventType.PICKUP, T0)
    updater = RecordingUpdater()
    at_threshold = red_flags.check_travel_time(
        db, task, CustodyEventType.TRANSIT, T0 + timedelta(minutes=30), updater=updater, settings=settings
    )
    just_over = red_flags.check_travel_time(
        db, task, CustodyEventType.TRANSIT, T0 + timedelta(minutes=30, seconds=1), updater=updater, settings=settings
    )
    assert (at_threshold, just_over) == (False, True)
    assert updater.calls == [(task.id, TaskStatus.SUSPICIOUS)]


@pytest.mark.parametrize("event_type", [CustodyEventType.PICKUP, CustodyEventType.FINAL])
def test_only_the_arrival_event_is_checked(db, settings, event_type):
    courier = create_user(db, UserRole.COURIER)
    task = create_task(db, courier, start=T0, end=T0 + timedelta(hours=2))
    updater = RecordingUpdater()
    raised = red_flags.check_travel_time(
        db, task, event_type, T0 + timedelta(hours=5), updater=updater, settings=settings
    )
    assert raised is False
    assert updater.calls == []


def test_missing_pickup_is_a_no_op(db, settings):
    courier = create_user(db, UserRole.COURIER)
    task = create_task(db, courier, start=T0, end=T0 + timedelta(hours=2))
    updater = RecordingUpdater()
    assert not red_flags.check_travel_time(
        db, task, CustodyEventType.TRANSIT, T0 + timedelta(hours=1), updater=updater, settings=settings
    )
