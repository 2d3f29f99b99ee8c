from __future__ import annotations

import json
from typing import Any, Callable

from timetable_app.logging import get_logger
from timetable_app.models import (
    AppState,
    AttendanceRecord,
    DEFAULT_ACADEMIC_YEAR,
    DEFAULT_SCHOOL_NAME,
    Entity,
    Student,
    TimeSlot,
    default_entities,
    default_time_slots,
)

from .database import Database

logger = get_logger(__name__)


def _text(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("expected a string")
    return value


def _items(factory: Callable[[dict], Any]) -> Callable[[Any], list]:
    def _decode(value: Any) -> list:
        if not isinstance(value, list):
            raise ValueError("expected a list")
        return [factory(item) for item in value]

    return _decode


# storage key -> (AppState field, decoder, default factory, encoder)
STATE_KEYS: dict[str, tuple[str, Callable[[Any], Any], Callable[[], Any], Callable[[Any], Any]]] = {
    "schoolName": ("school_name", _text, lambda: DEFAULT_SCHOOL_NAME, lambda value: value),
    "academicYear": ("academic_year", _text, lambda: DEFAULT_ACADEMIC_YEAR, lambda value: value),
    "entities": (
        "entities",
        _items(Entity.from_dict),
        default_entities,
        lambda items: [item.to_dict() for item in items],
    ),
    "students": (
        "students",
        _items(Student.from_dict),
        list,
        lambda items: [item.to_dict() for item in items],
    ),
    "timeSlots": (
        "time_slots",
        _items(TimeSlot.from_dict),
        default_time_slots,
        lambda items: [item.to_dict() for item in items],
    ),
    "attendance": (
        "attendance_records",
        _items(AttendanceRecord.from_dict),
        list,
        lambda items: [item.to_dict() for item in items],
    ),
}


class StateStore:
    """Keeps each section of the application state under its own key."""

    def __init__(self, database: Database) -> None:
        self._database = database

    def initialize(self) -> None:
        self._database.initialize()

    def load(self) -> AppState:
        with self._database.connect() as connection:
            rows = {row["key"]: row["value"] for row in connection.execute("SELECT key, value FROM app_state")}

        values: dict[str, Any] = {}
        for key, (field_name, decode, default, _) in STATE_KEYS.items():
            raw = rows.get(key)
            if raw is None:
                values[field_name] = default()
                continue
            try:
                values[field_name] = decode(json.loads(raw))
            except (ValueError, KeyError, TypeError, AttributeError) as exc:
                logger.warning("state_key_corrupt", key=key, error=str(exc))
                values[field_name] = default()

        return AppState(**values)

    def save(self, state: AppState) -> None:
        payload = [
            (key, json.dumps(encode(getattr(state, field_name))))
            for key, (field_name, _, _, encode) in STATE_KEYS.items()
        ]
        with self._database.connect() as connection:
            connection.executemany(
                """
                INSERT INTO app_state (key, value, updated_at)
                VALUES (?, ?, datetime('now'))
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = excluded.updated_at
                """,
                payload,
            )

    def read_raw(self, key: str) -> str | None:
        with self._database.connect() as connection:
            row = connection.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def write_raw(self, key: str, value: str) -> None:
        with self._database.connect() as connection:
            connection.execute(
                """
                INSERT INTO app_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )
