from __future__ import annotations

import json
from pathlib import Path

from timetable_app.data import Database, StateStore
from timetable_app.models import (
    AppState,
    AttendanceRecord,
    AttendanceStatus,
    Entity,
    EntityType,
    Student,
    TimeSlot,
    TimetableEntry,
)


def _store(tmp_path: Path) -> StateStore:
    store = StateStore(Database(tmp_path / "timetable.db"))
    store.initialize()
    return store


def test_empty_database_loads_defaults(tmp_path: Path) -> None:
    state = _store(tmp_path).load()

    assert state.school_name == "Mupini Combined School"
    assert state.academic_year == "2025"
    assert [entity.id for entity in state.entities] == ["t-new-1", "c-new-1"]
    assert [slot.period for slot in state.time_slots] == list(range(1, 10))
    assert state.time_slots[7].time_range == "2:00 - 3:00"
    assert state.students == []
    assert state.attendance_records == []


def test_save_and_load_round_trip(tmp_path: Path) -> None:
    store = _store(tmp_path)
    state = AppState(
        school_name="Hillside",
        academic_year="2026",
        entities=[
            Entity(
                id="t1",
                name="John Doe",
                short_code="JD",
                type=EntityType.TEACHER,
                schedule={"Mon": {1: TimetableEntry("MATH", "R1", "10A")}, "Tue": {}},
            ),
            Entity(id="c1", name="Grade 10A", type=EntityType.CLASS),
        ],
        students=[Student(id="s1", name="Alice", roll_number="001", class_id="c1")],
        time_slots=[TimeSlot(1, "8:00 - 8:45"), TimeSlot(2, "8:45 - 9:30")],
        attendance_records=[AttendanceRecord("2025-01-06", "c1", 1, "s1", AttendanceStatus.LATE)],
    )

    store.save(state)
    store.save(state)

    assert store.load() == state


def test_corrupt_key_falls_back_alone(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(AppState(school_name="Hillside", students=[Student("s1", "Alice", "01", "c-new-1")]))

    store.write_raw("students", "{not json")
    store.write_raw("timeSlots", json.dumps([{"timeRange": "missing period"}]))

    state = store.load()

    assert state.school_name == "Hillside"
    assert state.students == []
    assert len(state.time_slots) == 9


def test_persisted_layout_uses_storage_keys(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.save(AppState(attendance_records=[AttendanceRecord("2025-01-06", "c1", 2, "s1", AttendanceStatus.ABSENT)]))

    assert json.loads(store.read_raw("attendance")) == [
        {"date": "2025-01-06", "period": 2, "entityId": "c1", "studentId": "s1", "status": "ABSENT"}
    ]
    assert json.loads(store.read_raw("entities"))[0]["shortCode"] == "NT"
