from datetime import date

import pytest

from sealtrack import audit, schemas
from sealtrack.errors import ConflictError, ValidationError
from sealtrack.services import schedules
from sealtrack.vocab import AuditAction, EntityType, ExamClass, SubjectCategory, UserRole
from sealtrack.tests.conftest import auth_headers, create_center, create_user

EXAM_DAY = date(2025, 3, 3)


def _payload(center_id, **overrides) -> schemas.ScheduleCreate:
    data = {
        "exam_date": EXAM_DAY,
        "exam_class": ExamClass.CLASS_10,
        "subject": "Mathematics",
        "category": SubjectCategory.CORE,
        "center_id": center_id,
    }
    data.update(overrides)
    return schemas.ScheduleCreate(**data)


def test_create_applies_default_times_and_audits(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    core = schedules.create(db, _payload(center.id), actor=admin)
    vocational = schedules.create(
        db,
        _payload(center.id, subject="Retail", category=SubjectCategory.VOCATIONAL),
        actor=admin,
    )
    assert (core.start_time, core.end_time) == ("09:00", "12:00")
    assert (vocational.start_time, vocational.end_time) == ("09:00", "11:00")
    entries = audit.find_by_entity(db, EntityType.SCHEDULE, core.id)
    assert [entry.action for entry in entries] == [AuditAction.SCHEDULE_CREATED]


def test_duplicate_is_rejected_regardless_of_times(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    schedules.create(db, _payload(center.id, start_time="09:00"), actor=admin)
    with pytest.raises(ConflictError):
        schedules.create(db, _payload(center.id, start_time="10:30", end_time="13:30"), actor=admin)
    assert len(schedules.list_entries(db, center_id=center.id)) == 1


def test_create_rejects_unknown_or_inactive_center(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    center.is_active = False
    db.commit()
    with pytest.raises(ValidationError):
        schedules.create(db, _payload(center.id), actor=admin)


def test_vocational_wins_for_the_whole_date(db):
    admin = create_user(db, UserRole.ADMIN)
    first = create_center(db)
    second = create_center(db)
    assert schedules.category_for(db, EXAM_DAY) == SubjectCategory.CORE
    schedules.create(db, _payload(first.id), actor=admin)
    assert schedules.category_for(db, EXAM_DAY) == SubjectCategory.CORE
    schedules.create(
        db,
        _payload(second.id, exam_class=ExamClass.CLASS_12, subject="IT", category=SubjectCategory.VOCATIONAL),
        actor=admin,
    )
    assert schedules.category_for(db, EXAM_DAY) == SubjectCategory.VOCATIONAL
    assert schedules.CATEGORY_RULE == schedules.VOCATIONAL_WINS


def test_deactivated_entries_leave_the_schedule(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    entry = schedules.create(
        db, _payload(center.id, subject="IT", category=SubjectCategory.VOCATIONAL), actor=admin
    )
    schedules.deactivate_entry(db, entry.id, actor=admin)
    assert schedules.schedule_for(db, EXAM_DAY) == []
    assert schedules.category_for(db, EXAM_DAY) == SubjectCategory.CORE
    with pytest.raises(ConflictError):
        schedules.create(db, _payload(center.id, subject="IT"), actor=admin)


def test_update_checks_duplicates_excluding_itself(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    maths = schedules.create(db, _payload(center.id), actor=admin)
    science = schedules.create(db, _payload(center.id, subject="Science"), actor=admin)
    updated = schedules.update_entry(
        db, maths.id, schemas.ScheduleUpdate(start_time="09:30"), actor=admin
    )
    assert updated.start_time == "09:30"
    with pytest.raises(ConflictError):
        schedules.update_entry(db, science.id, schemas.ScheduleUpdate(subject="Mathematics"), actor=admin)


def test_reactivation_requires_an_active_center(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    entry = schedules.create(db, _payload(center.id), actor=admin)
    schedules.deactivate_entry(db, entry.id, actor=admin)
    center.is_active = False
    db.commit()

    with pytest.raises(ValidationError):
        schedules.update_entry(db, entry.id, schemas.ScheduleUpdate(is_active=True), actor=admin)
    assert schedules.get_entry(db, entry.id).is_active is False

    renamed = schedules.update_entry(db, entry.id, schemas.ScheduleUpdate(subject="Algebra"), actor=admin)
    assert renamed.subject == "Algebra"


def test_bulk_counts_conflicts_as_skipped(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    result = schedules.create_bulk(
        db,
        [_payload(center.id), _payload(center.id), _payload(center.id, subject="English")],
        actor=admin,
    )
    assert len(result.created) == 2
    assert result.skipped == 1


def test_exam_day_status(db):
    admin = create_user(db, UserRole.ADMIN)
    center = create_center(db)
    schedules.create(db, _payload(center.id, exam_date=date(2025, 3, 5)), actor=admin)

    before = schedules.is_active_day_for(db, center.id, EXAM_DAY)
    assert not before.is_exam_day
    assert before.next_exam_date == date(2025, 3, 5)

    on_the_day = schedules.is_active_day_for(db, center.id, date(2025, 3, 5))
    assert on_the_day.is_exam_day
    assert len(on_the_day.today_schedules) == 1

    after = schedules.is_active_day_for(db, center.id, date(2025, 3, 6))
    assert after == schedules.ExamDayStatus(is_exam_day=False)


def test_schedule_routes(client, db):
    admin = create_user(db, UserRole.ADMIN)
    courier = create_user(db, UserRole.COURIER)
    center = create_center(db)
    body = {
        "exam_date": "2025-03-03",
        "exam_class": "CLASS_12",
        "subject": "Physics",
        "center_id": str(center.id),
    }

    denied = client.post("/api/schedules/", json=body, headers=auth_headers(courier))
    assert denied.status_code == 403

    created = client.post("/api/schedules/", json=body, headers=auth_headers(admin))
    assert created.status_code == 200
    assert created.json()["end_time"] == "12:00"

    duplicate = client.post(
        "/api/schedules/", json={**body, "start_time": "10:00"}, headers=auth_headers(admin)
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "conflict"

    listed = client.get("/api/schedules/", params={"date": "2025-03-03"}, headers=auth_headers(courier))
    assert [entry["subject"] for entry in listed.json()] == ["Physics"]

    removed = client.delete(f"/api/schedules/{created.json()['id']}", headers=auth_headers(admin))
    assert removed.status_code == 200
    assert removed.json()["is_active"] is False


def test_time_window_routes(client, db, clock):
    courier = create_user(db, UserRole.COURIER)
    headers = auth_headers(courier)

    windows = client.get("/api/schedules/time-windows", params={"date": "2025-03-03"}, headers=headers)
    assert windows.status_code == 200
    assert windows.json()["category"] == "CORE"
    assert windows.json()["windows"]["PACKING"]["start_hour"] == 12

    clock.set(clock.now.replace(hour=8, minute=45))
    check = client.get(
        "/api/schedules/validate-time",
        params={"date": "2025-03-03", "event_type": "OPENING_MORNING"},
        headers=headers,
    )
    assert check.json()["allowed"] is True

    late = client.get(
        "/api/schedules/validate-time",
        params={"date": "2025-03-03", "event_type": "TREASURY_ARRIVAL"},
        headers=headers,
    )
    assert late.json()["allowed"] is False
    assert late.json()["window"]["label"] == "7:30 AM to 8:40 AM"


def test_exam_day_status_route_for_superintendent(client, db):
    admin = create_user(db, UserRole.ADMIN)
    superintendent = create_user(db, UserRole.CENTER_SUPERINTENDENT)
    center = create_center(db, superintendent)
    other = create_center(db)
    schedules.create(db, _payload(center.id), actor=admin)

    own = client.get("/api/schedules/exam-day-status", headers=auth_headers(superintendent))
    assert own.status_code == 200
    assert own.json()["is_exam_day"] is True
    assert own.json()["today_schedules"][0]["subject"] == "Mathematics"

    foreign = client.get(
        "/api/schedules/exam-day-status",
        params={"center_id": str(other.id)},
        headers=auth_headers(superintendent),
    )
    assert foreign.status_code == 403
