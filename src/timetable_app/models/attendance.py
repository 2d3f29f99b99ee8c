from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

# A percentage below this value is flagged in reports.
LOW_ATTENDANCE_THRESHOLD = 75


class AttendanceStatus(str, Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"

    @property
    def attended(self) -> bool:
        return self is not AttendanceStatus.ABSENT


@dataclass(slots=True)
class Student:
    id: str
    name: str
    roll_number: str
    class_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rollNumber": self.roll_number,
            "classId": self.class_id,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Student":
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name") or ""),
            roll_number=str(payload.get("rollNumber") or ""),
            class_id=str(payload.get("classId") or ""),
        )


@dataclass(slots=True)
class AttendanceRecord:
    date: str
    entity_id: str
    period: int
    student_id: str
    status: AttendanceStatus

    @property
    def key(self) -> tuple[str, str, int, str]:
        return (self.date, self.entity_id, self.period, self.student_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "period": self.period,
            "entityId": self.entity_id,
            "studentId": self.student_id,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AttendanceRecord":
        return cls(
            date=str(payload["date"]),
            entity_id=str(payload["entityId"]),
            period=int(payload["period"]),
            student_id=str(payload["studentId"]),
            status=AttendanceStatus(payload["status"]),
        )
