from datetime import date, datetime, timezone

import pytest

from sealtrack import audit, schemas
from sealtrack.errors import AuthorizationError, ConflictError, WindowClosedError
from sealtrack.services import exam_tracker, schedules
from sealtrack.services.ledger import EvidenceImage
from sealtrack.services.exam_tracker import TrackerSubmission
from sealtrack.vocab import AuditAction, ExamClass, Shift, SubjectCategory, TrackerEventType, UserRole
from sealtrack.tests.conftest import auth_headers, create_center, create_user

EXAM_DAY = date(2025, 3, 3)
IMAGE = EvidenceImage(data=b"treasury photo", filename="treasury.jpg")


def _at(hour: int, minute: int) -> datetime:
    return datetime(2025, 3, 3, hour, minute, tzinfo=timezone.utc)


def _submit(db, actor, settings, event_type, now, **extra):
    return exam_tracker.submit_tracker_event(
        db,
        TrackerSubmission(event_type=event_type, exam_date=EXAM_DAY, latitude=26.2, longitude=92.9, **extra),
        IMAGE,
        actor=actor,
        now=now,
        settings=settings,
    )


@pytest.fixture
def superintendent(db):
    user = create_user(db, UserRole.CENTER_SUPERINTENDENT)
    create_center(db, user)
    return user


def test_submission_derives_shift_and_audits(db, settings, superintendent):
    general = _submit(db, superintendent, settings, TrackerEventType.TREASURY_ARRIVAL, _at(8, 0))
    opening = _submit(db, superintendent, settings, TrackerEventType.OPENING_AFTERNOON, _at(8, 45))
    assert general.shift == Shift.GENERAL
    assert opening.shift == Shift.AFTERNOON
    assert opening.captured_at is not None
    actions = [entry.action for entry in audit.find_by_actor(db, superintendent.id)]
    assert actions == [AuditAction.TRACKER_EVENT_UPLOADED, AuditAction.TRACKER_EVENT_UPLOADED]


def test_duplicate_per_day_is_rejected(db, settings, superintendent):
    _submit(db, superintendent, settings, TrackerEventType.TREASURY_ARRIVAL, _at(8, 0))
    with pytest.raises(ConflictError):
        _submit(db, superintendent, settings, TrackerEventType.TREASURY_ARRIVAL, _at(8, 10))
    assert audit.find_by_actor(db, superintendent.id)[0].action == AuditAction.TRACKER_EVENT_REJECTED_DUPLICATE


def test_out_of_window_is_rejected_not_recorded(db, settings, superintendent):
    with pytest.raises(WindowClosedError) as excinfo:
        _submit(db, superintendent, settings, TrackerEventType.PACKING_MORNING, _at(11, 30))
    assert "12:00 Noon to 2:00 PM" in excinfo.value.message
    assert exam_tracker.all_events(db) == []
    assert audit.find_by_actor(db, superintendent.id)[0].action == AuditAction.TRACKER_EVENT_REJECTED_WINDOW


def test_vocational_day_opens_packing_early(db, settings, superintendent):
    admin = create_user(db, UserRole.ADMIN)
    center = schedules.center_for_superintendent(db, superintendent.id)
    schedules.create(
        db,
        schemas.ScheduleCreate(
            exam_date=EXAM_DAY,
            exam_class=ExamClass.CLASS_10,
            subject="Retail",
            category=SubjectCategory.VOCATIONAL,
            center_id=center.id,
        ),
        actor=admin,
    )
    event = _submit(db, superintendent, settings, TrackerEventType.PACKING_MORNING, _at(11, 30))
    assert event.shift == Shift.MORNING


def test_only_assigned_superintendents_submit(db, settings):
    courier = create_user(db, UserRole.COURIER)
    unassigned = create_user(db, UserRole.CENTER_SUPERINTENDENT)
    with pytest.raises(AuthorizationError):
        _submit(db, courier, settings, TrackerEventType.TREASURY_ARRIVAL, _at(8, 0))
    with pytest.raises(AuthorizationError):
        _submit(db, unassigned, settings, TrackerEventType.TREASURY_ARRIVAL, _at(8, 0))


def test_summary_lists_completed_and_pending(db, settings, superintendent):
    center = schedules.center_for_superintendent(db, superintendent.id)
    _submit(db, superintendent, settings, TrackerEventType.CUSTODIAN_HANDOVER, _at(8, 0))
    summary = exam_tracker.event_summary(db, center.id, EXAM_DAY)
    assert summary.completed == [TrackerEventType.CUSTODIAN_HANDOVER]
    assert len(summary.pending) == len(TrackerEventType) - 1
    assert summary.category == SubjectCategory.CORE


def test_tracker_routes(client, db, clock, superintendent):
    admin = create_user(db, UserRole.ADMIN)
    headers = auth_headers(superintendent)
    clock.set(_at(8, 5))

    resp = client.post(
        "/api/exam-tracker/events",
        data={"event_type": "TREASURY_ARRIVAL", "exam_date": "2025-03-03", "latitude": "26.2", "longitude": "92.9"},
        files={"image": ("t.jpg", b"photo", "image/jpeg")},
        headers=headers,
    )
    assert resp.status_code == 200
    event_id = resp.json()["id"]

    clock.set(_at(10, 0))
    closed = client.post(
        "/api/exam-tracker/events",
        data={"event_type": "PACKING_MORNING", "exam_date": "2025-03-03", "latitude": "26.2", "longitude": "92.9"},
        files={"image": ("p.jpg", b"photo", "image/jpeg")},
        headers=headers,
    )
    assert closed.status_code == 400
    assert closed.json()["error"] == "outside_time_window"

    no_image = client.post(
        "/api/exam-tracker/events",
        data={"event_type": "OPENING_MORNING", "exam_date": "2025-03-03", "latitude": "26.2", "longitude": "92.9"},
        headers=headers,
    )
    assert no_image.status_code == 400
    assert no_image.json()["error"] == "validation_error"

    mine = client.get("/api/exam-tracker/events", headers=headers)
    assert [item["id"] for item in mine.json()] == [event_id]

    summary = client.get("/api/exam-tracker/events/summary", headers=headers)
    assert summary.json()["completed"] == ["TREASURY_ARRIVAL"]
    assert summary.json()["windows"]["OPENING"]["label"] == "8:30 AM to 9:00 AM"

    assert client.get(f"/api/exam-tracker/events/{event_id}", headers=auth_headers(admin)).status_code == 200
    assert client.get("/api/exam-tracker/all", headers=headers).status_code == 403
    assert len(client.get("/api/exam-tracker/all", headers=auth_headers(admin)).json()) == 1
