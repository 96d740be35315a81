"""Closed vocabularies shared by the custody services."""

from __future__ import annotations

from enum import Enum

# purpose: single home for the fixed domain vocabularies so that custody and
#   exam-tracker workflows cannot exchange event types by accident
# status: active


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    COURIER = "COURIER"
    CENTER_SUPERINTENDENT = "CENTER_SUPERINTENDENT"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    SUSPICIOUS = "SUSPICIOUS"


class Shift(str, Enum):
    MORNING = "MORNING"
    AFTERNOON = "AFTERNOON"
    GENERAL = "GENERAL"


class CustodyEventType(str, Enum):
    """Checkpoints of a courier custody task, in the order they occur."""

    PICKUP = "PICKUP"
    TRANSIT = "TRANSIT"
    FINAL = "FINAL"


CUSTODY_SEQUENCE: tuple[CustodyEventType, ...] = (
    CustodyEventType.PICKUP,
    CustodyEventType.TRANSIT,
    CustodyEventType.FINAL,
)

# the afternoon half of a double-shift task reuses the morning pickup
AFTERNOON_SHIFT_SEQUENCE: tuple[CustodyEventType, ...] = (
    CustodyEventType.TRANSIT,
    CustodyEventType.FINAL,
)

PICKUP_CLASS = frozenset({CustodyEventType.PICKUP})
FINAL_CLASS = frozenset({CustodyEventType.FINAL})

# (departure from custody, arrival after transfer)
TRANSFER_PAIR: tuple[CustodyEventType, CustodyEventType] = (
    CustodyEventType.PICKUP,
    CustodyEventType.TRANSIT,
)


class TrackerEventType(str, Enum):
    """Checkpoints recorded by a center superintendent on an exam day."""

    TREASURY_ARRIVAL = "TREASURY_ARRIVAL"
    CUSTODIAN_HANDOVER = "CUSTODIAN_HANDOVER"
    OPENING_MORNING = "OPENING_MORNING"
    PACKING_MORNING = "PACKING_MORNING"
    DELIVERY_MORNING = "DELIVERY_MORNING"
    OPENING_AFTERNOON = "OPENING_AFTERNOON"
    PACKING_AFTERNOON = "PACKING_AFTERNOON"
    DELIVERY_AFTERNOON = "DELIVERY_AFTERNOON"

    @property
    def shift(self) -> Shift:
        if self.value.endswith("_MORNING"):
            return Shift.MORNING
        if self.value.endswith("_AFTERNOON"):
            return Shift.AFTERNOON
        return Shift.GENERAL


class SubjectCategory(str, Enum):
    CORE = "CORE"
    VOCATIONAL = "VOCATIONAL"


class ExamClass(str, Enum):
    CLASS_10 = "CLASS_10"
    CLASS_12 = "CLASS_12"


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    DEVICE_BOUND = "DEVICE_BOUND"
    DEVICE_MISMATCH = "DEVICE_MISMATCH"
    DEVICE_RESET = "DEVICE_RESET"
    DEVICE_BINDING_BYPASSED = "DEVICE_BINDING_BYPASSED"
    TASK_CREATED = "TASK_CREATED"
    TASK_ASSIGNED = "TASK_ASSIGNED"
    TASK_STATUS_CHANGED = "TASK_STATUS_CHANGED"
    TASK_MARKED_SUSPICIOUS = "TASK_MARKED_SUSPICIOUS"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_RESET_FOR_TESTING = "TASK_RESET_FOR_TESTING"
    EVENT_UPLOADED = "EVENT_UPLOADED"
    EVENT_UPLOAD_DENIED_NOT_ASSIGNED = "EVENT_UPLOAD_DENIED_NOT_ASSIGNED"
    EVENT_REJECTED_DUPLICATE = "EVENT_REJECTED_DUPLICATE"
    EVENT_REJECTED_TASK_LOCKED = "EVENT_REJECTED_TASK_LOCKED"
    RED_FLAG_TRAVEL_TIME = "RED_FLAG_TRAVEL_TIME"
    TRACKER_EVENT_UPLOADED = "TRACKER_EVENT_UPLOADED"
    TRACKER_EVENT_REJECTED_DUPLICATE = "TRACKER_EVENT_REJECTED_DUPLICATE"
    TRACKER_EVENT_REJECTED_WINDOW = "TRACKER_EVENT_REJECTED_WINDOW"
    SCHEDULE_CREATED = "SCHEDULE_CREATED"
    SCHEDULE_UPDATED = "SCHEDULE_UPDATED"
    SCHEDULE_DEACTIVATED = "SCHEDULE_DEACTIVATED"
    CENTER_CREATED = "CENTER_CREATED"


class EntityType(str, Enum):
    USER = "User"
    TASK = "Task"
    TASK_EVENT = "TaskEvent"
    TRACKER_EVENT = "ExamTrackerEvent"
    SCHEDULE = "ScheduleEntry"
    CENTER = "ExamCenter"
