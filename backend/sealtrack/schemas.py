from datetime import date, datetime
from typing import Optional, List, Dict
from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID

from .vocab import (
    AuditAction,
    CustodyEventType,
    ExamClass,
    Shift,
    SubjectCategory,
    TaskStatus,
    TrackerEventType,
    UserRole,
)

CLOCK_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class UserOut(BaseModel):
    id: UUID
    phone: str
    name: str
    role: UserRole
    is_active: bool = True
    device_id: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    phone: str
    password: str
    device_id: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class CenterCreate(BaseModel):
    name: str
    code: str
    superintendent_id: Optional[UUID] = None


class CenterOut(BaseModel):
    id: UUID
    name: str
    code: str
    is_active: bool
    superintendent_id: Optional[UUID] = None
    model_config = ConfigDict(from_attributes=True)


class TaskCreate(BaseModel):
    code: str = Field(min_length=1, max_length=100)
    source: str
    destination: str
    assignee_id: UUID
    start_time: datetime
    end_time: datetime
    expected_travel_minutes: Optional[int] = Field(default=None, ge=1)
    is_double_shift: bool = False
    shift: Optional[Shift] = None


class TaskOut(BaseModel):
    id: UUID
    code: str
    source: str
    destination: str
    assignee_id: UUID
    start_time: datetime
    end_time: datetime
    status: TaskStatus
    expected_travel_minutes: Optional[int] = None
    is_double_shift: bool = False
    shift: Optional[Shift] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class TaskEventOut(BaseModel):
    id: UUID
    task_id: UUID
    event_type: CustodyEventType
    image_ref: str
    image_hash: str
    latitude: float
    longitude: float
    server_timestamp: datetime
    model_config = ConfigDict(from_attributes=True)


class AllowedEventTypesOut(BaseModel):
    task_id: UUID
    allowed: List[CustodyEventType]


class TrackerEventOut(BaseModel):
    id: UUID
    user_id: UUID
    center_id: UUID
    event_type: TrackerEventType
    exam_date: date
    shift: Shift
    image_ref: str
    image_hash: str
    latitude: float
    longitude: float
    captured_at: Optional[datetime] = None
    server_timestamp: datetime
    model_config = ConfigDict(from_attributes=True)


class TimeWindowOut(BaseModel):
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    label: str
    model_config = ConfigDict(from_attributes=True)


class TimeWindowsOut(BaseModel):
    date: date
    category: SubjectCategory
    windows: Dict[str, TimeWindowOut]


class WindowCheckOut(BaseModel):
    allowed: bool
    window: TimeWindowOut
    message: str
    category: SubjectCategory
    model_config = ConfigDict(from_attributes=True)


class TrackerSummaryOut(BaseModel):
    center_id: UUID
    exam_date: date
    category: SubjectCategory
    completed: List[TrackerEventType]
    pending: List[TrackerEventType]
    windows: Dict[str, TimeWindowOut]


class ScheduleCreate(BaseModel):
    exam_date: date
    exam_class: ExamClass
    subject: str = Field(min_length=1)
    category: SubjectCategory = SubjectCategory.CORE
    center_id: UUID
    start_time: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)


class ScheduleUpdate(BaseModel):
    exam_date: Optional[date] = None
    exam_class: Optional[ExamClass] = None
    subject: Optional[str] = Field(default=None, min_length=1)
    category: Optional[SubjectCategory] = None
    center_id: Optional[UUID] = None
    start_time: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)
    end_time: Optional[str] = Field(default=None, pattern=CLOCK_PATTERN)
    is_active: Optional[bool] = None


class ScheduleOut(BaseModel):
    id: UUID
    exam_date: date
    exam_class: ExamClass
    subject: str
    category: SubjectCategory
    center_id: UUID
    start_time: str
    end_time: str
    is_active: bool
    created_by: Optional[UUID] = None
    model_config = ConfigDict(from_attributes=True)


class ScheduleBulkCreate(BaseModel):
    entries: List[ScheduleCreate]


class ScheduleBulkResult(BaseModel):
    created: List[ScheduleOut]
    skipped: int


class ExamDayStatusOut(BaseModel):
    is_exam_day: bool
    next_exam_date: Optional[date] = None
    today_schedules: List[ScheduleOut] = []
    model_config = ConfigDict(from_attributes=True)


class AuditLogOut(BaseModel):
    id: UUID
    actor_id: Optional[UUID] = None
    action: AuditAction
    entity_type: str
    entity_id: Optional[UUID] = None
    source_address: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class AuditPageOut(BaseModel):
    items: List[AuditLogOut]
    total: int
    has_more: bool
    model_config = ConfigDict(from_attributes=True)


class AuditReportItem(BaseModel):
    action: str
    count: int
