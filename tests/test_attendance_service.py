from timetable_app.models import AttendanceRecord, AttendanceStatus, Entity, EntityType, Student, TimetableEntry
from timetable_app.services.attendance_service import (
    attendance_for_period,
    mark_attendance,
    next_status,
    period_register,
    register_records,
    resolve_register_class,
)


def _record(status=AttendanceStatus.PRESENT, student_id="s1", period=1, date="2025-01-06"):
    return AttendanceRecord(date=date, entity_id="c1", period=period, student_id=student_id, status=status)


def test_mark_attendance_is_idempotent():
    records = mark_attendance([], [_record()])
    records = mark_attendance(records, [_record()])

    assert records == [_record()]


def test_mark_attendance_replaces_existing_key():
    records = mark_attendance([_record(), _record(student_id="s2")], [_record(AttendanceStatus.LATE)])

    assert len(records) == 2
    assert {record.student_id: record.status for record in records} == {
        "s1": AttendanceStatus.LATE,
        "s2": AttendanceStatus.PRESENT,
    }


def test_attendance_for_period_filters_by_key():
    records = [_record(), _record(period=2), _record(date="2025-01-07")]

    assert attendance_for_period(records, "2025-01-06", "c1", 1) == [_record()]


def _school():
    entities = [
        Entity(id="t1", name="John Doe", short_code="JD", type=EntityType.TEACHER),
        Entity(id="c1", name="Grade 10A", short_code="10A", type=EntityType.CLASS),
    ]
    students = [
        Student(id="s1", name="Alice", roll_number="01", class_id="c1"),
        Student(id="s2", name="Bob", roll_number="02", class_id="c1"),
        Student(id="s3", name="Cara", roll_number="03", class_id="c9"),
    ]
    return entities, students


def test_register_class_from_teacher_view():
    entities, _ = _school()

    assert resolve_register_class(entities, "t1", TimetableEntry("MATH", None, "10A")).id == "c1"
    assert resolve_register_class(entities, "c1", None).id == "c1"
    assert resolve_register_class(entities, "t1", TimetableEntry("MATH")) is None


def test_period_register_defaults_to_present():
    entities, students = _school()
    records = [_record(AttendanceStatus.ABSENT, student_id="s2")]

    register = period_register(
        entities,
        students,
        records,
        entity_id="t1",
        entry=TimetableEntry("MATH", None, "10A"),
        date="2025-01-06",
        period=1,
    )

    assert register.class_id == "c1"
    assert register.has_existing_records is True
    assert register.statuses == {"s1": AttendanceStatus.PRESENT, "s2": AttendanceStatus.ABSENT}

    saved = register_records(register, {"s1": AttendanceStatus.EXCUSED})
    assert [(record.student_id, record.status) for record in saved] == [
        ("s1", AttendanceStatus.EXCUSED),
        ("s2", AttendanceStatus.PRESENT),
    ]
    assert all(record.entity_id == "c1" for record in saved)


def test_status_cycle_wraps_around():
    assert next_status(AttendanceStatus.PRESENT) is AttendanceStatus.ABSENT
    assert next_status(AttendanceStatus.ABSENT) is AttendanceStatus.LATE
    assert next_status(AttendanceStatus.LATE) is AttendanceStatus.EXCUSED
    assert next_status(AttendanceStatus.EXCUSED) is AttendanceStatus.PRESENT
