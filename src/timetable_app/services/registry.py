from __future__ import annotations

import random
import secrets
import time
from dataclasses import replace
from datetime import datetime
from typing import Iterable

from timetable_app.logging import get_logger
from timetable_app.models import (
    AppState,
    AttendanceRecord,
    DEFAULT_ACADEMIC_YEAR,
    DEFAULT_SCHOOL_NAME,
    Entity,
    EntityType,
    Student,
    TimeSlot,
    TimetableEntry,
    default_entities,
    default_time_slots,
)
from timetable_app.utils.time import current_period, day_code, is_school_day

from .attendance_service import mark_attendance, remove_for_entity, remove_for_student
from .lookup import display_name_for
from .schedule_mirror import write_slot

logger = get_logger(__name__)


class EntityNotFoundError(LookupError):
    """Raised when an edit targets an entity or student that does not exist."""


class RegistryValidationError(ValueError):
    """Raised for rejected administrator input such as a blank name."""


# ----------------------------------------------------------------------
# School details
# ----------------------------------------------------------------------
def update_school_name(state: AppState, name: str) -> AppState:
    return state.evolve(school_name=name)


def update_academic_year(state: AppState, year: str) -> AppState:
    return state.evolve(academic_year=year)


# ----------------------------------------------------------------------
# Teachers and classes
# ----------------------------------------------------------------------
def default_short_code(name: str) -> str:
    cleaned = name.strip()
    code = cleaned[:3].upper()
    if len(code) < 2:
        code = cleaned.upper() + str(random.randint(0, 9))
    return code


def create_entity(name: str, entity_type: EntityType, short_code: str | None = None) -> Entity:
    cleaned = (name or "").strip()
    if not cleaned:
        raise RegistryValidationError("A name is required.")

    code = (short_code or "").strip() or default_short_code(cleaned)
    return Entity(
        id=f"{entity_type.value.lower()}-{int(time.time() * 1000)}-{secrets.token_hex(3)}",
        name=cleaned,
        short_code=code,
        type=entity_type,
    )


def add_entity(state: AppState, entity: Entity) -> AppState:
    return state.evolve(entities=[*state.entities, entity])


def update_entity(
    state: AppState,
    entity_id: str,
    *,
    name: str | None = None,
    short_code: str | None = None,
) -> AppState:
    if state.find_entity(entity_id) is None:
        raise EntityNotFoundError(f"No teacher or class with id {entity_id!r}.")
    if name is not None and not name.strip():
        raise RegistryValidationError("A name is required.")

    def _apply(entity: Entity) -> Entity:
        if entity.id != entity_id:
            return entity
        changes: dict = {}
        if name is not None:
            changes["name"] = name.strip()
        if short_code is not None:
            changes["short_code"] = short_code.strip().upper() or None
        return replace(entity, **changes)

    return state.evolve(entities=[_apply(entity) for entity in state.entities])


def delete_entity(state: AppState, entity_id: str) -> AppState:
    """Remove an entity and its attendance.

    Slots in other timetables that still reference the entity's code are left
    as they are.
    """

    remaining = [entity for entity in state.entities if entity.id != entity_id]
    records = remove_for_entity(state.attendance_records, entity_id)
    logger.info(
        "entity_deleted",
        entity_id=entity_id,
        attendance_removed=len(state.attendance_records) - len(records),
    )
    return state.evolve(entities=remaining, attendance_records=records)


def update_schedule(
    state: AppState,
    entity_id: str,
    day: str,
    period: int,
    entry: TimetableEntry | None,
) -> AppState:
    entities = write_slot(state.entities, entity_id, day, period, entry)
    if entities is state.entities:
        return state
    return state.evolve(entities=entities)


# ----------------------------------------------------------------------
# Students
# ----------------------------------------------------------------------
def add_student(state: AppState, student: Student) -> AppState:
    return state.evolve(students=[*state.students, student])


def bulk_import_students(state: AppState, text: str, class_id: str) -> tuple[AppState, int]:
    """Add one student per ``roll, name`` line; shorter lines are skipped."""

    if not class_id:
        raise RegistryValidationError("Choose a class before importing students.")

    stamp = int(time.time() * 1000)
    added: list[Student] = []
    for index, line in enumerate(text.split("\n")):
        parts = [part.strip() for part in line.split(",")]
        if len(parts) < 2:
            continue
        added.append(Student(id=f"stu-{stamp}-{index}", roll_number=parts[0], name=parts[1], class_id=class_id))

    return state.evolve(students=[*state.students, *added]), len(added)


def update_student(
    state: AppState,
    student_id: str,
    *,
    name: str | None = None,
    roll_number: str | None = None,
    class_id: str | None = None,
) -> AppState:
    if state.find_student(student_id) is None:
        raise EntityNotFoundError(f"No student with id {student_id!r}.")

    changes = {
        key: value
        for key, value in {"name": name, "roll_number": roll_number, "class_id": class_id}.items()
        if value is not None
    }
    return state.evolve(
        students=[replace(student, **changes) if student.id == student_id else student for student in state.students]
    )


def delete_student(state: AppState, student_id: str) -> AppState:
    return state.evolve(
        students=[student for student in state.students if student.id != student_id],
        attendance_records=remove_for_student(state.attendance_records, student_id),
    )


# ----------------------------------------------------------------------
# Periods
# ----------------------------------------------------------------------
def update_time_slots(state: AppState, slots: Iterable[TimeSlot]) -> AppState:
    return state.evolve(time_slots=[replace(slot) for slot in slots])


def add_time_slot(state: AppState, time_range: str = "00:00 - 00:00") -> AppState:
    slot = TimeSlot(period=len(state.time_slots) + 1, time_range=time_range)
    return state.evolve(time_slots=[*state.time_slots, slot])


def remove_last_time_slot(state: AppState) -> AppState:
    if len(state.time_slots) <= 1:
        return state
    return state.evolve(time_slots=state.time_slots[:-1])


# ----------------------------------------------------------------------
# Attendance
# ----------------------------------------------------------------------
def record_attendance(state: AppState, records: Iterable[AttendanceRecord]) -> AppState:
    return state.evolve(attendance_records=mark_attendance(state.attendance_records, records))


# ----------------------------------------------------------------------
# Whole-state operations
# ----------------------------------------------------------------------
def reset() -> AppState:
    return AppState(
        school_name=DEFAULT_SCHOOL_NAME,
        academic_year=DEFAULT_ACADEMIC_YEAR,
        entities=default_entities(),
        students=[],
        time_slots=default_time_slots(),
        attendance_records=[],
    )


def export_data(state: AppState) -> dict:
    return state.to_dict()


def import_data(state: AppState, payload: dict) -> AppState:
    """Replace each section present in ``payload``; absent sections are kept."""

    changes: dict = {}
    if payload.get("schoolName"):
        changes["school_name"] = str(payload["schoolName"])
    if payload.get("academicYear"):
        changes["academic_year"] = str(payload["academicYear"])
    if payload.get("entities"):
        changes["entities"] = [Entity.from_dict(item) for item in payload["entities"]]
    if payload.get("students"):
        changes["students"] = [Student.from_dict(item) for item in payload["students"]]
    if payload.get("timeSlots"):
        changes["time_slots"] = [TimeSlot.from_dict(item) for item in payload["timeSlots"]]
    if payload.get("attendanceRecords"):
        changes["attendance_records"] = [AttendanceRecord.from_dict(item) for item in payload["attendanceRecords"]]
    return state.evolve(**changes)


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------
def live_sessions(entities: list[Entity], day: str, period: int) -> list[dict]:
    """What every class has in one slot, with the teacher's name resolved."""

    sessions = []
    for entity in entities:
        if entity.type is not EntityType.CLASS:
            continue
        entry = entity.slot(day, period)
        sessions.append(
            {
                "class_id": entity.id,
                "class_name": entity.name,
                "subject": entry.subject if entry else None,
                "room": entry.room if entry else None,
                "teacher": display_name_for(
                    [item for item in entities if item.type is EntityType.TEACHER],
                    entry.teacher_or_class if entry else None,
                    fallback="Unassigned",
                ),
            }
        )
    return sessions


def sessions_now(state: AppState, now: datetime) -> list[dict]:
    if not is_school_day(now):
        return []
    slot = current_period(state.time_slots, now)
    if slot is None:
        return []
    return live_sessions(state.entities, day_code(now), slot.period)
