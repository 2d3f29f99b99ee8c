from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

DAYS: tuple[str, ...] = ("Sat", "Sun", "Mon", "Tue", "Wed", "Thu")

DAY_LABELS = {
    "Sat": "Saturday",
    "Sun": "Sunday",
    "Mon": "Monday",
    "Tue": "Tuesday",
    "Wed": "Wednesday",
    "Thu": "Thursday",
}


class EntityType(str, Enum):
    TEACHER = "TEACHER"
    CLASS = "CLASS"

    @property
    def opposite(self) -> "EntityType":
        return EntityType.CLASS if self is EntityType.TEACHER else EntityType.TEACHER


@dataclass(slots=True)
class TimetableEntry:
    subject: str
    room: Optional[str] = None
    teacher_or_class: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"subject": self.subject}
        if self.room:
            payload["room"] = self.room
        if self.teacher_or_class:
            payload["teacherOrClass"] = self.teacher_or_class
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TimetableEntry":
        return cls(
            subject=str(payload.get("subject") or ""),
            room=payload.get("room") or None,
            teacher_or_class=payload.get("teacherOrClass") or None,
        )


# day -> period -> entry; periods without an entry are absent.
WeeklySchedule = Dict[str, Dict[int, TimetableEntry]]


def schedule_to_dict(schedule: WeeklySchedule) -> Dict[str, Dict[str, Dict[str, Any]]]:
    return {
        day: {str(period): entry.to_dict() for period, entry in sorted(slots.items())}
        for day, slots in schedule.items()
    }


def schedule_from_dict(payload: Dict[str, Any] | None) -> WeeklySchedule:
    schedule: WeeklySchedule = {}
    if not payload:
        return schedule

    for day, slots in payload.items():
        day_map: Dict[int, TimetableEntry] = {}
        for period_key, entry in (slots or {}).items():
            if not entry:
                continue
            try:
                period = int(period_key)
            except (TypeError, ValueError):
                continue
            day_map[period] = TimetableEntry.from_dict(entry)
        schedule[day] = day_map
    return schedule


@dataclass(slots=True)
class Entity:
    id: str
    name: str
    type: EntityType
    short_code: Optional[str] = None
    schedule: WeeklySchedule = field(default_factory=dict)

    @property
    def identifier(self) -> str:
        """Code other schedules use to reference this entity."""
        return self.short_code or self.name

    def slot(self, day: str, period: int) -> TimetableEntry | None:
        return self.schedule.get(day, {}).get(period)

    def has_schedule(self) -> bool:
        return any(self.schedule.values())

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "schedule": schedule_to_dict(self.schedule),
        }
        if self.short_code:
            payload["shortCode"] = self.short_code
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Entity":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or ""),
            type=EntityType(payload["type"]),
            short_code=payload.get("shortCode") or None,
            schedule=schedule_from_dict(payload.get("schedule")),
        )


@dataclass(slots=True)
class TimeSlot:
    period: int
    time_range: str

    def to_dict(self) -> Dict[str, Any]:
        return {"period": self.period, "timeRange": self.time_range}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TimeSlot":
        return cls(period=int(payload["period"]), time_range=str(payload.get("timeRange") or ""))


DEFAULT_TIME_RANGES: tuple[str, ...] = (
    "6:45 - 7:45",
    "7:45 - 8:30",
    "9:00 - 9:45",
    "9:45 - 10:30",
    "10:40 - 11:25",
    "11:25 - 12:10",
    "12:10 - 12:55",
    "2:00 - 3:00",
    "3:00 - 4:00",
)


def default_time_slots() -> list[TimeSlot]:
    return [TimeSlot(period=index, time_range=value) for index, value in enumerate(DEFAULT_TIME_RANGES, start=1)]


def default_entities() -> list[Entity]:
    return [
        Entity(id="t-new-1", name="New Teacher", short_code="NT", type=EntityType.TEACHER),
        Entity(id="c-new-1", name="New Class", short_code="NC", type=EntityType.CLASS),
    ]
