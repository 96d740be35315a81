from datetime import datetime, timezone

from sealtrack.vocab import UserRole
from sealtrack.tests.conftest import DEVICE, auth_headers, create_user

IMAGE = ("seal.jpg", b"\xff\xd8 sealed pack", "image/jpeg")


def _upload(client, task_id, headers, event_type):
    return client.post(
        f"/api/tasks/{task_id}/events",
        data={"event_type": event_type, "latitude": "26.1445", "longitude": "91.7362"},
        files={"image": IMAGE},
        headers=headers,
    )


def test_sealed_pack_custody_scenario(client, db, clock):
    admin = create_user(db, UserRole.ADMIN)
    create_user(db, UserRole.COURIER, phone="9000000042", password="courier-42")
    today = datetime(2025, 3, 3, tzinfo=timezone.utc)

    login = client.post(
        "/api/auth/login",
        json={"phone": "9000000042", "password": "courier-42", "device_id": DEVICE},
    )
    assert login.status_code == 200
    courier_id = login.json()["user"]["id"]
    headers = {"Authorization": f"Bearer {login.json()['access_token']}", "X-Device-Id": DEVICE}

    created = client.post(
        "/api/tasks/",
        json={
            "code": "SP2025-000123",
            "source": "Police Station",
            "destination": "Exam Center",
            "assignee_id": courier_id,
            "start_time": today.replace(hour=9).isoformat(),
            "end_time": today.replace(hour=13).isoformat(),
        },
        headers=auth_headers(admin),
    )
    assert created.status_code == 200
    task_id = created.json()["id"]

    clock.set(today.replace(hour=9, minute=10))
    assert _upload(client, task_id, headers, "PICKUP").status_code == 200
    assert client.get(f"/api/tasks/{task_id}", headers=headers).json()["status"] == "IN_PROGRESS"

    duplicate = _upload(client, task_id, headers, "PICKUP")
    assert duplicate.status_code == 409

    clock.set(today.replace(hour=12, minute=50))
    assert _upload(client, task_id, headers, "FINAL").status_code == 200
    assert client.get(f"/api/tasks/{task_id}", headers=headers).json()["status"] == "COMPLETED"

    locked = _upload(client, task_id, headers, "TRANSIT")
    assert locked.status_code == 400
    assert locked.json()["error"] == "invalid_state"

    trail = client.get("/api/audit/", params={"limit": 50}, headers=auth_headers(admin)).json()
    actions = [item["action"] for item in trail["items"]]
    assert actions[0] == "EVENT_REJECTED_TASK_LOCKED"
    for expected in ("DEVICE_BOUND", "LOGIN", "TASK_CREATED", "TASK_ASSIGNED", "EVENT_UPLOADED", "TASK_COMPLETED"):
        assert expected in actions
