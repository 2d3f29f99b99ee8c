from __future__ import annotations

import secrets
import time
from datetime import datetime
from pathlib import Path
from typing import Iterable, Mapping

from timetable_app.config.settings import Settings
from timetable_app.data import Database, StateStore
from timetable_app.logging import get_logger
from timetable_app.models import (
    AppState,
    AttendanceRecord,
    AttendanceStatus,
    ChatMessage,
    Entity,
    EntityType,
    ImportStatus,
    Student,
    TimeSlot,
    TimetableEntry,
)

from . import attendance_report, registry
from .ai_gateway import ChatProvider, GeminiClient, ImportProvider, TimetableDocument
from .assistant import AssistantSession
from .attendance_service import PeriodRegister, attendance_for_period, period_register, register_records
from .edit_gate import EditGate
from .import_reconciler import ImportSession
from .schedule_mirror import build_entry

logger = get_logger(__name__)


class SchoolService:
    """Holds the current state snapshot and persists every change."""

    def __init__(
        self,
        store: StateStore,
        *,
        edit_gate: EditGate,
        import_provider: ImportProvider | None = None,
        chat_provider: ChatProvider | None = None,
    ) -> None:
        self._store = store
        self._state = AppState()
        self.edit_gate = edit_gate
        self._import_session = ImportSession(import_provider) if import_provider is not None else None
        self._chat_provider = chat_provider
        self._assistant: AssistantSession | None = None

    def initialize(self) -> None:
        self._store.initialize()
        self._state = self._store.load()

    @property
    def state(self) -> AppState:
        return self._state

    def _commit(self, new_state: AppState) -> AppState:
        if new_state is not self._state:
            self._store.save(new_state)
            self._state = new_state
        return self._state

    # ------------------------------------------------------------------
    # School details
    # ------------------------------------------------------------------
    def update_school_name(self, name: str) -> AppState:
        return self._commit(registry.update_school_name(self._state, name))

    def update_academic_year(self, year: str) -> AppState:
        return self._commit(registry.update_academic_year(self._state, year))

    # ------------------------------------------------------------------
    # Teachers, classes and timetables
    # ------------------------------------------------------------------
    def entities_of(self, entity_type: EntityType) -> list[Entity]:
        return [entity for entity in self._state.entities if entity.type is entity_type]

    def add_entity(self, name: str, entity_type: EntityType, short_code: str | None = None) -> Entity:
        entity = registry.create_entity(name, entity_type, short_code)
        self._commit(registry.add_entity(self._state, entity))
        return entity

    def update_entity(self, entity_id: str, *, name: str | None = None, short_code: str | None = None) -> AppState:
        return self._commit(registry.update_entity(self._state, entity_id, name=name, short_code=short_code))

    def delete_entity(self, entity_id: str) -> AppState:
        self.edit_gate.require_unlocked()
        return self._commit(registry.delete_entity(self._state, entity_id))

    def set_slot(
        self,
        entity_id: str,
        day: str,
        period: int,
        *,
        subject: str,
        room: str | None = None,
        related_code: str | None = None,
    ) -> AppState:
        self.edit_gate.require_unlocked()
        entry = build_entry(subject, room, related_code)
        return self._commit(registry.update_schedule(self._state, entity_id, day, period, entry))

    def clear_slot(self, entity_id: str, day: str, period: int) -> AppState:
        self.edit_gate.require_unlocked()
        return self._commit(registry.update_schedule(self._state, entity_id, day, period, None))

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------
    def add_student(self, name: str, roll_number: str, class_id: str) -> Student:
        student = Student(
            id=f"stu-{int(time.time() * 1000)}-{secrets.token_hex(3)}",
            name=name.strip(),
            roll_number=roll_number.strip(),
            class_id=class_id,
        )
        self._commit(registry.add_student(self._state, student))
        return student

    def bulk_import_students(self, text: str, class_id: str) -> int:
        new_state, count = registry.bulk_import_students(self._state, text, class_id)
        self._commit(new_state)
        logger.info("students_imported", class_id=class_id, count=count)
        return count

    def update_student(self, student_id: str, **changes: str) -> AppState:
        return self._commit(registry.update_student(self._state, student_id, **changes))

    def delete_student(self, student_id: str) -> AppState:
        self.edit_gate.require_unlocked()
        return self._commit(registry.delete_student(self._state, student_id))

    # ------------------------------------------------------------------
    # Periods
    # ------------------------------------------------------------------
    def update_time_slots(self, slots: Iterable[TimeSlot]) -> AppState:
        return self._commit(registry.update_time_slots(self._state, slots))

    def add_time_slot(self, time_range: str = "00:00 - 00:00") -> AppState:
        return self._commit(registry.add_time_slot(self._state, time_range))

    def remove_last_time_slot(self) -> AppState:
        return self._commit(registry.remove_last_time_slot(self._state))

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------
    def mark_attendance(self, records: Iterable[AttendanceRecord]) -> AppState:
        return self._commit(registry.record_attendance(self._state, records))

    def attendance_for_period(self, date: str, entity_id: str, period: int) -> list[AttendanceRecord]:
        return attendance_for_period(self._state.attendance_records, date, entity_id, period)

    def period_register(
        self,
        entity_id: str,
        entry: TimetableEntry | None,
        date: str,
        period: int,
    ) -> PeriodRegister | None:
        return period_register(
            self._state.entities,
            self._state.students,
            self._state.attendance_records,
            entity_id=entity_id,
            entry=entry,
            date=date,
            period=period,
        )

    def save_register(
        self,
        register: PeriodRegister,
        statuses: Mapping[str, AttendanceStatus] | None = None,
    ) -> AppState:
        return self.mark_attendance(register_records(register, statuses))

    def daily_matrix(self, class_id: str, date: str) -> attendance_report.DailyMatrix:
        return attendance_report.daily_matrix(
            self._state.students,
            self._state.attendance_records,
            self._state.time_slots,
            class_id,
            date,
        )

    def subject_rollup(self, class_id: str) -> attendance_report.SubjectRollup:
        return attendance_report.subject_rollup(
            self._state.entities,
            self._state.students,
            self._state.attendance_records,
            class_id,
        )

    def export_daily_csv(self, class_id: str, date: str, destination: Path | None = None) -> str:
        return attendance_report.export_daily_csv(
            self._state.students,
            self._state.attendance_records,
            self._state.time_slots,
            class_id,
            date,
            destination,
        )

    def export_subject_csv(self, class_id: str, destination: Path | None = None) -> str:
        return attendance_report.export_subject_csv(self.subject_rollup(class_id), destination)

    def export_period_register_csv(
        self,
        register: PeriodRegister,
        subject: str,
        destination: Path | None = None,
    ) -> str:
        return attendance_report.export_period_register_csv(
            register,
            self._state.students_in_class(register.class_id),
            subject,
            destination,
        )

    def sessions_now(self, now: datetime) -> list[dict]:
        return registry.sessions_now(self._state, now)

    # ------------------------------------------------------------------
    # AI import and assistant
    # ------------------------------------------------------------------
    @property
    def import_session(self) -> ImportSession:
        if self._import_session is None:
            raise RuntimeError("No AI import provider is configured.")
        return self._import_session

    def start_import(self, *, document: TimetableDocument | None = None, text: str | None = None) -> ImportStatus:
        return self.import_session.start(document=document, text=text)

    def cancel_import(self) -> None:
        self.import_session.cancel()

    def finalize_import(self, mappings: Mapping[str, str]) -> AppState:
        self.import_session.finalize(
            self._state.entities,
            mappings,
            commit=lambda entities: self._commit(self._state.evolve(entities=entities)),
        )
        return self._state

    @property
    def assistant(self) -> AssistantSession:
        if self._chat_provider is None:
            raise RuntimeError("No AI chat provider is configured.")
        if self._assistant is None:
            self._assistant = AssistantSession(
                self._chat_provider,
                lambda: (self._state.school_name, self._state.entities, self._state.time_slots),
            )
        return self._assistant

    def ask(self, question: str) -> ChatMessage | None:
        return self.assistant.send(question)

    # ------------------------------------------------------------------
    # Whole-state operations
    # ------------------------------------------------------------------
    def reset(self) -> AppState:
        self.edit_gate.require_unlocked()
        logger.warning("state_reset")
        return self._commit(registry.reset())

    def import_data(self, payload: dict) -> AppState:
        self.edit_gate.require_unlocked()
        return self._commit(registry.import_data(self._state, payload))

    def export_data(self) -> dict:
        return registry.export_data(self._state)


def build_service(settings: Settings) -> SchoolService:
    """Wire the service to the configured database and Gemini client."""

    store = StateStore(Database(settings.database_path))
    client = GeminiClient(settings)
    service = SchoolService(
        store,
        edit_gate=EditGate(settings.admin_password),
        import_provider=client,
        chat_provider=client,
    )
    service.initialize()
    return service
