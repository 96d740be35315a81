import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SEALTRACK_SECRET_KEY", "test-secret")
os.environ.setdefault("SEALTRACK_ENV", "test")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from sealtrack.main import app
from sealtrack.database import Base, build_engine, get_db
from sealtrack.dependencies import get_clock, get_settings
from sealtrack.auth import create_access_token, get_password_hash
from sealtrack import models
from sealtrack.vocab import TaskStatus, UserRole

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEVICE = "device-fingerprint-1"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def settings(tmp_path):
    d = tmp_path / "uploads"
    d.mkdir()
    test_settings = replace(app.state.settings, upload_dir=str(d))
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield test_settings
    app.dependency_overrides.pop(get_settings, None)


@pytest.fixture
def clock():
    frozen = FrozenClock(datetime(2025, 3, 3, 8, 0, tzinfo=timezone.utc))
    app.dependency_overrides[get_clock] = lambda: frozen
    yield frozen
    app.dependency_overrides.pop(get_clock, None)


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(settings, clock):
    with TestClient(app) as c:
        yield c


def create_user(
    db,
    role: UserRole = UserRole.COURIER,
    *,
    phone: str | None = None,
    password: str = "secret",
    device_id: str | None = None,
    is_active: bool = True,
) -> models.User:
    user = models.User(
        phone=phone or f"9{uuid.uuid4().int % 10**9:09d}",
        name=f"{role.value.title()} {uuid.uuid4().hex[:6]}",
        hashed_password=get_password_hash(password),
        role=role,
        is_active=is_active,
        device_id=device_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_center(db, superintendent: models.User | None = None, *, code: str | None = None) -> models.ExamCenter:
    center = models.ExamCenter(
        name="Government High School",
        code=code or f"EC-{uuid.uuid4().hex[:8]}",
        superintendent_id=superintendent.id if superintendent else None,
    )
    db.add(center)
    db.commit()
    db.refresh(center)
    return center


def create_task(
    db,
    assignee: models.User,
    *,
    start: datetime,
    end: datetime,
    code: str | None = None,
    status: TaskStatus = TaskStatus.PENDING,
    **extra,
) -> models.Task:
    task = models.Task(
        code=code or f"SP-{uuid.uuid4().hex[:10]}",
        source="Police Station",
        destination="Exam Center",
        assignee_id=assignee.id,
        start_time=start,
        end_time=end,
        status=status,
        **extra,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def auth_headers(user: models.User, *, device_id: str | None = None) -> dict:
    token = create_access_token({"sub": str(user.id)}, app.state.settings)
    headers = {"Authorization": f"Bearer {token}"}
    if device_id:
        headers["X-Device-Id"] = device_id
    return headers
