from .ai_import import AiImportResult, ChatMessage, ImportLayout, ImportStatus, RawProfile
from .attendance import LOW_ATTENDANCE_THRESHOLD, AttendanceRecord, AttendanceStatus, Student
from .state import DEFAULT_ACADEMIC_YEAR, DEFAULT_SCHOOL_NAME, AppState
from .timetable import (
    DAY_LABELS,
    DAYS,
    Entity,
    EntityType,
    TimeSlot,
    TimetableEntry,
    WeeklySchedule,
    default_entities,
    default_time_slots,
)

__all__ = [
    "AiImportResult",
    "AppState",
    "AttendanceRecord",
    "AttendanceStatus",
    "ChatMessage",
    "DAYS",
    "DAY_LABELS",
    "DEFAULT_ACADEMIC_YEAR",
    "DEFAULT_SCHOOL_NAME",
    "Entity",
    "EntityType",
    "ImportLayout",
    "ImportStatus",
    "LOW_ATTENDANCE_THRESHOLD",
    "RawProfile",
    "Student",
    "TimeSlot",
    "TimetableEntry",
    "WeeklySchedule",
    "default_entities",
    "default_time_slots",
]
