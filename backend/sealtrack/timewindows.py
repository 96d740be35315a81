"""Clock-time windows that gate when checkpoint events are legitimate."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from .vocab import SubjectCategory, TrackerEventType

# purpose: pure window calculations shared by the schedule registry, the
#   exam-tracker ledger and the time-window API
# inputs: subject category, event type, aware datetimes
# outputs: TimeWindow / WindowCheck values; no I/O
# status: active


class WindowSlot(str, Enum):
    TREASURY_ARRIVAL = "TREASURY_ARRIVAL"
    CUSTODIAN_HANDOVER = "CUSTODIAN_HANDOVER"
    OPENING = "OPENING"
    PACKING = "PACKING"
    DELIVERY = "DELIVERY"


@dataclass(frozen=True)
class TimeWindow:
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    label: str

    @property
    def start_minutes(self) -> int:
        return self.start_hour * 60 + self.start_minute

    @property
    def end_minutes(self) -> int:
        return self.end_hour * 60 + self.end_minute

    def contains(self, clock: time) -> bool:
        """Inclusive at both ends, compared at minute resolution."""

        current = clock.hour * 60 + clock.minute
        return self.start_minutes <= current <= self.end_minutes

    def as_dict(self) -> dict:
        return {
            "start_hour": self.start_hour,
            "start_minute": self.start_minute,
            "end_hour": self.end_hour,
            "end_minute": self.end_minute,
            "label": self.label,
        }


@dataclass(frozen=True)
class WindowCheck:
    allowed: bool
    window: TimeWindow
    message: str


_MORNING_RECEIPT = TimeWindow(7, 30, 8, 40, "7:30 AM to 8:40 AM")
_OPENING = TimeWindow(8, 30, 9, 0, "8:30 AM to 9:00 AM")
_CORE_CLOSE = TimeWindow(12, 0, 14, 0, "12:00 Noon to 2:00 PM")
# vocational papers finish an hour earlier, so packing opens at 11
_VOCATIONAL_CLOSE = TimeWindow(11, 0, 14, 0, "11:00 AM to 2:00 PM")

_SLOT_BY_EVENT: dict[TrackerEventType, WindowSlot] = {
    TrackerEventType.TREASURY_ARRIVAL: WindowSlot.TREASURY_ARRIVAL,
    TrackerEventType.CUSTODIAN_HANDOVER: WindowSlot.CUSTODIAN_HANDOVER,
    TrackerEventType.OPENING_MORNING: WindowSlot.OPENING,
    TrackerEventType.OPENING_AFTERNOON: WindowSlot.OPENING,
    TrackerEventType.PACKING_MORNING: WindowSlot.PACKING,
    TrackerEventType.PACKING_AFTERNOON: WindowSlot.PACKING,
    TrackerEventType.DELIVERY_MORNING: WindowSlot.DELIVERY,
    TrackerEventType.DELIVERY_AFTERNOON: WindowSlot.DELIVERY,
}

DEFAULT_SLOT = WindowSlot.TREASURY_ARRIVAL


def windows_for(category: SubjectCategory | str) -> dict[WindowSlot, TimeWindow]:
    """Return every slot's window for the category; unknown categories get CORE."""

    value = category.value if isinstance(category, SubjectCategory) else str(category)
    closing = _VOCATIONAL_CLOSE if value == SubjectCategory.VOCATIONAL.value else _CORE_CLOSE
    return {
        WindowSlot.TREASURY_ARRIVAL: _MORNING_RECEIPT,
        WindowSlot.CUSTODIAN_HANDOVER: _MORNING_RECEIPT,
        WindowSlot.OPENING: _OPENING,
        WindowSlot.PACKING: closing,
        WindowSlot.DELIVERY: closing,
    }


def slot_for(event_type: TrackerEventType | str) -> WindowSlot:
    """Map an event type to its slot, falling back to the earliest window."""

    try:
        return _SLOT_BY_EVENT[TrackerEventType(event_type)]
    except ValueError:
        return DEFAULT_SLOT


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_clock(moment: datetime, tz: tzinfo) -> time:
    """Wall-clock time of ``moment`` in ``tz``; naive values are taken as UTC."""

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).time()


def is_allowed(
    event_type: TrackerEventType | str,
    category: SubjectCategory | str,
    now: datetime,
    tz: tzinfo = timezone.utc,
) -> WindowCheck:
    window = windows_for(category)[slot_for(event_type)]
    allowed = window.contains(local_clock(now, tz))
    if allowed:
        message = f"Within allowed time window: {window.label}"
    else:
        message = (
            f"This event can only be submitted between {window.label}. "
            "Current time is outside the allowed window."
        )
    return WindowCheck(allowed=allowed, window=window, message=message)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def within_task_window(moment: datetime, start: datetime, end: datetime) -> bool:
    """Custody tasks are gated by their own scheduled start and end."""

    return as_utc(start) <= as_utc(moment) <= as_utc(end)
