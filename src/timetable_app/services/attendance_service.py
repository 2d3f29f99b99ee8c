from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from timetable_app.models import (
    AttendanceRecord,
    AttendanceStatus,
    Entity,
    EntityType,
    Student,
    TimetableEntry,
)

from .lookup import resolve_entity

_STATUS_CYCLE: tuple[AttendanceStatus, ...] = (
    AttendanceStatus.PRESENT,
    AttendanceStatus.ABSENT,
    AttendanceStatus.LATE,
    AttendanceStatus.EXCUSED,
)


@dataclass(slots=True)
class PeriodRegister:
    class_id: str
    class_name: str
    date: str
    period: int
    statuses: dict[str, AttendanceStatus]
    has_existing_records: bool


def mark_attendance(
    records: Sequence[AttendanceRecord],
    new_records: Iterable[AttendanceRecord],
) -> list[AttendanceRecord]:
    """Upsert attendance: a new record replaces any record with the same key."""

    incoming: dict[tuple[str, str, int, str], AttendanceRecord] = {}
    for record in new_records:
        incoming[record.key] = record

    kept = [record for record in records if record.key not in incoming]
    return kept + list(incoming.values())


def attendance_for_period(
    records: Iterable[AttendanceRecord],
    date: str,
    entity_id: str,
    period: int,
) -> list[AttendanceRecord]:
    return [
        record
        for record in records
        if record.date == date and record.entity_id == entity_id and record.period == period
    ]


def remove_for_entity(records: Iterable[AttendanceRecord], entity_id: str) -> list[AttendanceRecord]:
    return [record for record in records if record.entity_id != entity_id]


def remove_for_student(records: Iterable[AttendanceRecord], student_id: str) -> list[AttendanceRecord]:
    return [record for record in records if record.student_id != student_id]


def resolve_register_class(
    entities: Sequence[Entity],
    entity_id: str,
    entry: TimetableEntry | None,
) -> Entity | None:
    """Find the class whose register a timetable slot belongs to.

    From a class timetable that is the class itself; from a teacher timetable
    it is the class referenced by the slot.
    """

    root = next((entity for entity in entities if entity.id == entity_id), None)
    if root is None:
        return None
    if root.type is EntityType.CLASS:
        return root
    if entry is not None and entry.teacher_or_class:
        return resolve_entity(entities, entry.teacher_or_class, entity_type=EntityType.CLASS)
    return None


def period_register(
    entities: Sequence[Entity],
    students: Sequence[Student],
    records: Sequence[AttendanceRecord],
    *,
    entity_id: str,
    entry: TimetableEntry | None,
    date: str,
    period: int,
) -> PeriodRegister | None:
    """Current register for one period, unrecorded students default to PRESENT."""

    target = resolve_register_class(entities, entity_id, entry)
    if target is None:
        return None

    existing = {record.student_id: record.status for record in attendance_for_period(records, date, target.id, period)}
    statuses = {
        student.id: existing.get(student.id, AttendanceStatus.PRESENT)
        for student in students
        if student.class_id == target.id
    }
    return PeriodRegister(
        class_id=target.id,
        class_name=target.name,
        date=date,
        period=period,
        statuses=statuses,
        has_existing_records=bool(existing),
    )


def register_records(register: PeriodRegister, statuses: Mapping[str, AttendanceStatus] | None = None) -> list[AttendanceRecord]:
    """Turn a (possibly edited) register into records saved against the class."""

    chosen = statuses if statuses is not None else register.statuses
    return [
        AttendanceRecord(
            date=register.date,
            entity_id=register.class_id,
            period=register.period,
            student_id=student_id,
            status=chosen.get(student_id, AttendanceStatus.PRESENT),
        )
        for student_id in register.statuses
    ]


def next_status(status: AttendanceStatus) -> AttendanceStatus:
    index = _STATUS_CYCLE.index(status)
    return _STATUS_CYCLE[(index + 1) % len(_STATUS_CYCLE)]
