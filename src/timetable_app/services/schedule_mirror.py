from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from timetable_app.logging import get_logger
from timetable_app.models import DAYS, Entity, EntityType, TimetableEntry

from .lookup import resolve_counterpart

logger = get_logger(__name__)


class ScheduleValidationError(ValueError):
    """Raised when a manual schedule edit is incomplete or out of range."""


def build_entry(subject: str, room: str | None = None, related_code: str | None = None) -> TimetableEntry:
    """Validate editor input and turn it into a timetable entry."""

    cleaned_subject = (subject or "").strip()
    if not cleaned_subject:
        raise ScheduleValidationError("Subject code is required.")

    return TimetableEntry(
        subject=cleaned_subject.upper(),
        room=(room or "").strip() or None,
        teacher_or_class=(related_code or "").strip() or None,
    )


def counterpart_options(entities: Sequence[Entity], entity_type: EntityType) -> list[tuple[str, Entity]]:
    """Entities a slot of ``entity_type`` may reference, keyed by the code used."""

    return [(entity.identifier, entity) for entity in entities if entity.type is not entity_type]


def _validate_slot(day: str, period: int) -> None:
    if day not in DAYS:
        raise ScheduleValidationError(f"Unknown day {day!r}; expected one of {', '.join(DAYS)}.")
    if int(period) < 1:
        raise ScheduleValidationError("Period numbers start at 1.")


def _with_fresh_day(entity: Entity, day: str) -> Entity:
    schedule = dict(entity.schedule)
    schedule[day] = dict(entity.schedule.get(day, {}))
    return replace(entity, schedule=schedule)


def write_slot(
    entities: Sequence[Entity],
    source_entity_id: str,
    day: str,
    period: int,
    entry: TimetableEntry | None,
) -> list[Entity]:
    """Write one slot and mirror it onto the referenced counterpart.

    Every entity in the result is a new object whose schedule shares all day
    maps with the input except ``day``, which is rebuilt. An unknown source
    id returns ``entities`` itself. Clearing a slot leaves the counterpart's
    mirrored slot in place.
    """

    _validate_slot(day, period)

    index = next((i for i, entity in enumerate(entities) if entity.id == source_entity_id), None)
    if index is None:
        return entities  # type: ignore[return-value]

    source = entities[index]
    next_entities = [_with_fresh_day(entity, day) for entity in entities]
    source_slots = next_entities[index].schedule[day]
    if entry is None:
        source_slots.pop(period, None)
        return next_entities
    source_slots[period] = entry

    if not entry.teacher_or_class:
        return next_entities

    target = resolve_counterpart(next_entities, source, entry.teacher_or_class)
    if target is None:
        logger.debug(
            "mirror_target_unresolved",
            source_id=source.id,
            code=entry.teacher_or_class,
            day=day,
            period=period,
        )
        return next_entities

    target.schedule[day][period] = TimetableEntry(
        subject=entry.subject,
        room=entry.room,
        teacher_or_class=source.identifier,
    )
    return next_entities
