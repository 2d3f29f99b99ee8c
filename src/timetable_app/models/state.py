from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict

from .attendance import AttendanceRecord, Student
from .timetable import Entity, TimeSlot, default_entities, default_time_slots

DEFAULT_SCHOOL_NAME = "Mupini Combined School"
DEFAULT_ACADEMIC_YEAR = "2025"


@dataclass(slots=True)
class AppState:
    """Snapshot of everything the school administrator manages.

    Reducers never mutate a snapshot in place; they return a new one built
    with :meth:`evolve`.
    """

    school_name: str = DEFAULT_SCHOOL_NAME
    academic_year: str = DEFAULT_ACADEMIC_YEAR
    entities: list[Entity] = field(default_factory=default_entities)
    students: list[Student] = field(default_factory=list)
    time_slots: list[TimeSlot] = field(default_factory=default_time_slots)
    attendance_records: list[AttendanceRecord] = field(default_factory=list)

    def evolve(self, **changes: Any) -> "AppState":
        return replace(self, **changes)

    def find_entity(self, entity_id: str) -> Entity | None:
        return next((entity for entity in self.entities if entity.id == entity_id), None)

    def find_student(self, student_id: str) -> Student | None:
        return next((student for student in self.students if student.id == student_id), None)

    def students_in_class(self, class_id: str) -> list[Student]:
        return [student for student in self.students if student.class_id == class_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schoolName": self.school_name,
            "academicYear": self.academic_year,
            "entities": [entity.to_dict() for entity in self.entities],
            "students": [student.to_dict() for student in self.students],
            "timeSlots": [slot.to_dict() for slot in self.time_slots],
            "attendanceRecords": [record.to_dict() for record in self.attendance_records],
        }
