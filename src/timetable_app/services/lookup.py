from __future__ import annotations

from typing import Iterable

from timetable_app.models import Entity, EntityType


def resolve_entity(
    entities: Iterable[Entity],
    code: str | None,
    *,
    entity_type: EntityType | None = None,
) -> Entity | None:
    """Find the entity a schedule cross-reference points at.

    A reference matches either the short code or the display name. Codes are
    not unique, so the first match in collection order wins. ``entity_type``
    restricts the search to one kind of entity.
    """

    if not code:
        return None

    for entity in entities:
        if entity_type is not None and entity.type is not entity_type:
            continue
        if entity.short_code == code or entity.name == code:
            return entity
    return None


def resolve_counterpart(entities: Iterable[Entity], source: Entity, code: str | None) -> Entity | None:
    return resolve_entity(entities, code, entity_type=source.type.opposite)


def display_name_for(entities: Iterable[Entity], code: str | None, *, fallback: str | None = None) -> str | None:
    if not code:
        return fallback
    matched = resolve_entity(entities, code)
    return matched.name if matched else code
