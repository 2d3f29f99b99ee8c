from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from timetable_app.models import (
    LOW_ATTENDANCE_THRESHOLD,
    AttendanceRecord,
    AttendanceStatus,
    Entity,
    Student,
    TimeSlot,
)
from timetable_app.utils.time import weekday_for_date

from .attendance_service import PeriodRegister

DailyMatrix = dict[str, dict[int, AttendanceStatus]]


def round_half_up(value: float) -> int:
    """Round like the percentages shown to staff: .5 always goes up."""
    return int(math.floor(value + 0.5))


def percentage(present: int, total: int) -> int | None:
    if total <= 0:
        return None
    return round_half_up(present / total * 100)


def is_flagged(value: int | None) -> bool:
    return value is not None and value < LOW_ATTENDANCE_THRESHOLD


@dataclass(slots=True)
class SubjectStat:
    subject: str
    present: int = 0
    total: int = 0

    @property
    def percent(self) -> int | None:
        return percentage(self.present, self.total)


@dataclass(slots=True)
class StudentRollup:
    student: Student
    stats: list[SubjectStat]

    @property
    def present(self) -> int:
        return sum(stat.present for stat in self.stats)

    @property
    def total(self) -> int:
        return sum(stat.total for stat in self.stats)

    @property
    def overall_percent(self) -> int | None:
        return percentage(self.present, self.total)

    def stat_for(self, subject: str) -> SubjectStat | None:
        return next((stat for stat in self.stats if stat.subject == subject), None)


@dataclass(slots=True)
class SubjectAverage:
    subject: str
    percentage: int
    total_sessions: int


@dataclass(slots=True)
class ClassAverage:
    subjects: list[SubjectAverage]
    overall: int


@dataclass(slots=True)
class SubjectRollup:
    subjects: list[str] = field(default_factory=list)
    per_student: list[StudentRollup] = field(default_factory=list)
    class_average: ClassAverage | None = None


def class_subjects(class_entity: Entity) -> list[str]:
    """Sorted, upper-cased subject codes taught anywhere in the class timetable."""

    subjects = {
        entry.subject.upper()
        for slots in class_entity.schedule.values()
        for entry in (slots or {}).values()
        if entry is not None and entry.subject
    }
    return sorted(subjects)


def daily_matrix(
    students: Sequence[Student],
    records: Iterable[AttendanceRecord],
    time_slots: Sequence[TimeSlot],
    class_id: str,
    date: str,
) -> DailyMatrix:
    """Per-student status for each configured period on one date.

    A period with no record is left out of the student's row, which is not the
    same as ABSENT.
    """

    index = {record.key: record.status for record in records if record.date == date and record.entity_id == class_id}

    matrix: DailyMatrix = {}
    for student in students:
        if student.class_id != class_id:
            continue
        row: dict[int, AttendanceStatus] = {}
        for slot in time_slots:
            status = index.get((date, class_id, slot.period, student.id))
            if status is not None:
                row[slot.period] = status
        matrix[student.id] = row
    return matrix


def subject_rollup(
    entities: Sequence[Entity],
    students: Sequence[Student],
    records: Iterable[AttendanceRecord],
    class_id: str,
) -> SubjectRollup:
    class_entity = next((entity for entity in entities if entity.id == class_id), None)
    if class_entity is None:
        return SubjectRollup()

    subjects = class_subjects(class_entity)
    class_students = [student for student in students if student.class_id == class_id]
    counters: dict[str, dict[str, SubjectStat]] = {
        student.id: {subject: SubjectStat(subject) for subject in subjects} for student in class_students
    }

    for record in records:
        if record.entity_id != class_id or record.student_id not in counters:
            continue
        weekday = weekday_for_date(record.date)
        if weekday is None:
            continue
        entry = class_entity.schedule.get(weekday, {}).get(record.period)
        if entry is None or not entry.subject:
            continue
        stat = counters[record.student_id].get(entry.subject.upper())
        if stat is None:
            continue
        stat.total += 1
        if record.status.attended:
            stat.present += 1

    per_student = [
        StudentRollup(student=student, stats=[counters[student.id][subject] for subject in subjects])
        for student in class_students
    ]
    return SubjectRollup(
        subjects=subjects,
        per_student=per_student,
        class_average=_class_average(subjects, per_student),
    )


def _class_average(subjects: list[str], per_student: list[StudentRollup]) -> ClassAverage | None:
    if not per_student:
        return None

    averages: list[SubjectAverage] = []
    for index, subject in enumerate(subjects):
        present = sum(rollup.stats[index].present for rollup in per_student)
        total = sum(rollup.stats[index].total for rollup in per_student)
        averages.append(SubjectAverage(subject, percentage(present, total) or 0, total))

    grand_present = sum(rollup.present for rollup in per_student)
    grand_total = sum(rollup.total for rollup in per_student)
    return ClassAverage(subjects=averages, overall=percentage(grand_present, grand_total) or 0)


# ----------------------------------------------------------------------
# CSV export
# ----------------------------------------------------------------------
def _percent_cell(value: int | None) -> str:
    return f"{value}%" if value is not None else "0%"


def _write_csv(frame: pd.DataFrame, destination: Path | None) -> str:
    text = frame.to_csv(index=False, lineterminator="\n")
    if destination is not None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(text, encoding="utf-8")
    return text


def daily_frame(
    students: Sequence[Student],
    records: Iterable[AttendanceRecord],
    time_slots: Sequence[TimeSlot],
    class_id: str,
    date: str,
) -> pd.DataFrame:
    matrix = daily_matrix(students, records, time_slots, class_id, date)
    columns = ["Student Name", "Roll Number", *[f"Period {slot.period}" for slot in time_slots]]
    rows = []
    for student in students:
        if student.id not in matrix:
            continue
        row = matrix[student.id]
        rows.append(
            [
                student.name,
                student.roll_number,
                *[row[slot.period].value if slot.period in row else "N/A" for slot in time_slots],
            ]
        )
    return pd.DataFrame(rows, columns=columns)


def subject_frame(rollup: SubjectRollup) -> pd.DataFrame:
    columns = ["Student Name", "Roll Number", *rollup.subjects, "Overall %"]
    rows = [
        [
            item.student.name,
            item.student.roll_number,
            *[_percent_cell(stat.percent) for stat in item.stats],
            _percent_cell(item.overall_percent),
        ]
        for item in rollup.per_student
    ]
    return pd.DataFrame(rows, columns=columns)


def period_register_frame(register: PeriodRegister, students: Sequence[Student], subject: str) -> pd.DataFrame:
    columns = ["Student Name", "Roll Number", "Status", "Date", "Period", "Subject"]
    rows = [
        [
            student.name,
            student.roll_number,
            register.statuses.get(student.id, AttendanceStatus.PRESENT).value,
            register.date,
            f"Period {register.period}",
            subject,
        ]
        for student in students
        if student.id in register.statuses
    ]
    return pd.DataFrame(rows, columns=columns)


def export_daily_csv(
    students: Sequence[Student],
    records: Iterable[AttendanceRecord],
    time_slots: Sequence[TimeSlot],
    class_id: str,
    date: str,
    destination: Path | None = None,
) -> str:
    return _write_csv(daily_frame(students, records, time_slots, class_id, date), destination)


def export_subject_csv(rollup: SubjectRollup, destination: Path | None = None) -> str:
    return _write_csv(subject_frame(rollup), destination)


def export_period_register_csv(
    register: PeriodRegister,
    students: Sequence[Student],
    subject: str,
    destination: Path | None = None,
) -> str:
    return _write_csv(period_register_frame(register, students, subject), destination)


def export_filename(class_name: str, view: str, today: str) -> str:
    return f"{class_name}_Attendance_{view}_{today}.csv"


def period_register_filename(class_name: str, period: int, date: str) -> str:
    return f"{class_name}_P{period}_{date}.csv"
