from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from timetable_app.data import Database, StateStore
from timetable_app.models import (
    AiImportResult,
    AttendanceRecord,
    AttendanceStatus,
    EntityType,
    ImportLayout,
    ImportStatus,
    RawProfile,
    TimetableEntry,
)
from timetable_app.services import (
    EditGate,
    EditLockedError,
    RegistryValidationError,
    ScheduleValidationError,
    SchoolService,
)


class RecordingChat:
    def __init__(self):
        self.school_names = []

    def answer(self, question, *, school_name, entities, time_slots):
        self.school_names.append(school_name)
        return "ok"


class FailingStore(StateStore):
    def __init__(self, database):
        super().__init__(database)
        self.fail = False

    def save(self, state):
        if self.fail:
            raise OSError("disk full")
        super().save(state)


class StaticImportProvider:
    def extract_timetable(self, *, document=None, text=None):
        return AiImportResult(
            detected_type=ImportLayout.CLASS_WISE,
            profiles=[RawProfile("Grade 7", {"Sun": {2: TimetableEntry("GEO", None, "XY")}})],
            unknown_codes=["XY"],
        )


def _service(tmp_path: Path, **kwargs) -> SchoolService:
    service = SchoolService(
        StateStore(Database(tmp_path / "timetable.db")),
        edit_gate=EditGate("closed"),
        **kwargs,
    )
    service.initialize()
    return service


def _reload(tmp_path: Path) -> SchoolService:
    return _service(tmp_path)


def _populated(tmp_path: Path) -> tuple[SchoolService, str, str]:
    service = _service(tmp_path)
    teacher = service.add_entity("John Doe", EntityType.TEACHER, "JD")
    klass = service.add_entity("Grade 10A", EntityType.CLASS, "10A")
    service.edit_gate.unlock("closed")
    service.set_slot(teacher.id, "Mon", 1, subject="math", room="R1", related_code="10A")
    return service, teacher.id, klass.id


def test_schedule_edits_are_locked_by_default(tmp_path: Path) -> None:
    service = _service(tmp_path)

    with pytest.raises(EditLockedError):
        service.set_slot("t-new-1", "Mon", 1, subject="MATH")

    assert service.edit_gate.unlock("wrong") is False
    assert service.edit_gate.is_unlocked is False


def test_schedule_edit_is_mirrored_and_persisted(tmp_path: Path) -> None:
    _, teacher_id, class_id = _populated(tmp_path)

    reloaded = _reload(tmp_path)

    assert reloaded.state.find_entity(teacher_id).slot("Mon", 1) == TimetableEntry("MATH", "R1", "10A")
    assert reloaded.state.find_entity(class_id).slot("Mon", 1) == TimetableEntry("MATH", "R1", "JD")


def test_invalid_edit_leaves_state_untouched(tmp_path: Path) -> None:
    service, teacher_id, _ = _populated(tmp_path)
    before = service.state

    with pytest.raises(ScheduleValidationError):
        service.set_slot(teacher_id, "Tue", 2, subject="  ", related_code="10A")

    assert service.state is before


def test_delete_class_cascades_attendance_only(tmp_path: Path) -> None:
    service, teacher_id, class_id = _populated(tmp_path)
    student = service.add_student("Alice", "01", class_id)
    service.mark_attendance(
        [
            AttendanceRecord("2025-01-06", class_id, 1, student.id, AttendanceStatus.PRESENT),
            AttendanceRecord("2025-01-06", "c-new-1", 1, student.id, AttendanceStatus.ABSENT),
        ]
    )

    service.delete_entity(class_id)

    state = _reload(tmp_path).state
    assert state.find_entity(class_id) is None
    assert [record.entity_id for record in state.attendance_records] == ["c-new-1"]
    # the teacher's slot still points at the deleted class
    assert state.find_entity(teacher_id).slot("Mon", 1).teacher_or_class == "10A"


def test_delete_student_cascades_attendance(tmp_path: Path) -> None:
    service, _, class_id = _populated(tmp_path)
    alice = service.add_student("Alice", "01", class_id)
    bob = service.add_student("Bob", "02", class_id)
    service.mark_attendance(
        [
            AttendanceRecord("2025-01-06", class_id, 1, alice.id, AttendanceStatus.PRESENT),
            AttendanceRecord("2025-01-06", class_id, 1, bob.id, AttendanceStatus.LATE),
        ]
    )

    service.delete_student(alice.id)

    assert [record.student_id for record in service.state.attendance_records] == [bob.id]


def test_register_round_trip_feeds_reports(tmp_path: Path) -> None:
    service, teacher_id, class_id = _populated(tmp_path)
    service.bulk_import_students("01, Alice\n02, Bob\nbroken line\n", class_id)
    entry = service.state.find_entity(teacher_id).slot("Mon", 1)

    register = service.period_register(teacher_id, entry, "2025-01-06", 1)
    alice_id = next(student.id for student in service.state.students if student.name == "Alice")
    service.save_register(register, {**register.statuses, alice_id: AttendanceStatus.ABSENT})

    rollup = service.subject_rollup(class_id)
    assert rollup.subjects == ["MATH"]
    assert [item.overall_percent for item in rollup.per_student] == [0, 100]
    assert service.daily_matrix(class_id, "2025-01-06")[alice_id] == {1: AttendanceStatus.ABSENT}
    assert service.period_register(teacher_id, entry, "2025-01-06", 1).has_existing_records is True


def test_entity_creation_rules(tmp_path: Path) -> None:
    service = _service(tmp_path)

    assert service.add_entity("Physics Lab", EntityType.CLASS).short_code == "PHY"
    short = service.add_entity("Q", EntityType.TEACHER)
    assert short.short_code.startswith("Q") and len(short.short_code) == 2
    with pytest.raises(RegistryValidationError):
        service.add_entity("   ", EntityType.CLASS)

    service.update_entity(short.id, name="Quinn", short_code="qn")
    assert service.state.find_entity(short.id).short_code == "QN"


def test_time_slot_editing_keeps_one_period(tmp_path: Path) -> None:
    service = _service(tmp_path)
    service.add_time_slot("4:00 - 5:00")
    assert service.state.time_slots[-1].period == 10

    for _ in range(20):
        service.remove_last_time_slot()

    assert [slot.period for slot in service.state.time_slots] == [1]


def test_ai_import_through_service(tmp_path: Path) -> None:
    service = _service(tmp_path, import_provider=StaticImportProvider())

    assert service.start_import(text="anything") is ImportStatus.REVIEW
    service.finalize_import({"XY": "Xavier Young"})

    names = [entity.name for entity in _reload(tmp_path).state.entities]
    assert names == ["New Teacher", "New Class", "Grade 7", "Xavier Young"]


def test_import_without_provider_is_reported(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        _service(tmp_path).start_import(text="x")


def test_reset_and_backup(tmp_path: Path) -> None:
    service, _, _ = _populated(tmp_path)
    backup = service.export_data()

    service.reset()
    assert len(service.state.entities) == 2

    service.import_data(backup)
    assert [entity.name for entity in service.state.entities][-2:] == ["John Doe", "Grade 10A"]


def test_sessions_now(tmp_path: Path) -> None:
    service, _, class_id = _populated(tmp_path)

    # 2025-01-06 is a Monday; 7:00 falls in period 1.
    sessions = service.sessions_now(datetime(2025, 1, 6, 7, 0))

    grade = next(item for item in sessions if item["class_id"] == class_id)
    assert grade["subject"] == "MATH"
    assert grade["teacher"] == "John Doe"
    new_class = next(item for item in sessions if item["class_id"] == "c-new-1")
    assert new_class["teacher"] == "Unassigned"
    assert service.sessions_now(datetime(2025, 1, 10, 7, 0)) == []


def test_destructive_operations_need_the_password(tmp_path: Path) -> None:
    service, teacher_id, class_id = _populated(tmp_path)
    student = service.add_student("Alice", "01", class_id)
    backup = service.export_data()
    service.edit_gate.lock()
    before = service.state

    for action in (
        lambda: service.delete_entity(teacher_id),
        lambda: service.delete_student(student.id),
        service.reset,
        lambda: service.import_data(backup),
    ):
        with pytest.raises(EditLockedError):
            action()

    assert service.state is before
    assert _reload(tmp_path).state.find_entity(teacher_id) is not None


def test_assistant_sees_renamed_school(tmp_path: Path) -> None:
    chat = RecordingChat()
    service = _service(tmp_path, chat_provider=chat)
    service.ask("hello")

    service.update_school_name("Riverside High")
    service.ask("hello again")

    assert chat.school_names == ["Mupini Combined School", "Riverside High"]


def test_failed_save_keeps_import_under_review(tmp_path: Path) -> None:
    store = FailingStore(Database(tmp_path / "timetable.db"))
    service = SchoolService(store, edit_gate=EditGate("closed"), import_provider=StaticImportProvider())
    service.initialize()
    service.start_import(text="anything")
    store.fail = True

    with pytest.raises(OSError):
        service.finalize_import({"XY": "Xavier Young"})

    assert service.import_session.status is ImportStatus.REVIEW
    assert len(service.state.entities) == 2

    store.fail = False
    service.finalize_import({"XY": "Xavier Young"})
    assert len(_reload(tmp_path).state.entities) == 4
