from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from .timetable import EntityType, WeeklySchedule


class ImportLayout(str, Enum):
    """Which kind of entity heads each block of an imported timetable."""

    TEACHER_WISE = "TEACHER_WISE"
    CLASS_WISE = "CLASS_WISE"

    @property
    def primary_type(self) -> EntityType:
        return EntityType.TEACHER if self is ImportLayout.TEACHER_WISE else EntityType.CLASS

    @property
    def secondary_type(self) -> EntityType:
        return self.primary_type.opposite


class ImportStatus(str, Enum):
    IDLE = "IDLE"
    PROCESSING = "PROCESSING"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


@dataclass(slots=True)
class RawProfile:
    name: str
    schedule: WeeklySchedule = field(default_factory=dict)


@dataclass(slots=True)
class AiImportResult:
    detected_type: ImportLayout
    profiles: list[RawProfile] = field(default_factory=list)
    unknown_codes: list[str] = field(default_factory=list)
    raw_text_response: Optional[str] = None


@dataclass(slots=True)
class ChatMessage:
    role: str
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
