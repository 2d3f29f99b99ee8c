from __future__ import annotations

import copy
import re
import secrets
import threading
import time
from typing import Callable, Mapping, Sequence

from timetable_app.logging import get_logger
from timetable_app.models import (
    AiImportResult,
    Entity,
    EntityType,
    ImportLayout,
    ImportStatus,
    TimetableEntry,
)

from .ai_gateway import AiGatewayError, ImportProvider, TimetableDocument

logger = get_logger(__name__)

IdFactory = Callable[[EntityType, "str | None"], str]


class ImportInProgressError(RuntimeError):
    """Raised when an import is started while another is still being processed."""


class NoImportToFinalizeError(RuntimeError):
    """Raised when finalizing without an extraction waiting for review."""


def generate_entity_id(entity_type: EntityType, suffix: str | None = None) -> str:
    tail = suffix if suffix else secrets.token_hex(3)[:5]
    return f"{entity_type.value.lower()}-{int(time.time() * 1000)}-{tail}"


def initials_code(name: str) -> str:
    return "".join(word[0] for word in name.split())[:2].upper()


def letters_code(name: str) -> str:
    return re.sub(r"[^A-Za-z]", "", name)[:3].upper()


def primary_code(layout: ImportLayout, name: str) -> str:
    if layout is ImportLayout.TEACHER_WISE:
        return initials_code(name)
    return letters_code(name)


def secondary_code(layout: ImportLayout, code: str, real_name: str) -> str:
    if layout is ImportLayout.CLASS_WISE:
        return code
    return initials_code(real_name)


def finalize(
    existing: Sequence[Entity],
    ai_result: AiImportResult,
    mappings: Mapping[str, str],
    *,
    id_factory: IdFactory = generate_entity_id,
) -> list[Entity]:
    """Merge a reviewed extraction into the entity collection.

    Every profile becomes a primary entity. Every mapped code becomes a
    secondary entity of the opposite type; slots that carried the code are
    pointed at the secondary entity and mirrored into its schedule. Codes
    without a mapping stay as unresolved references.
    """

    layout = ai_result.detected_type
    primaries: list[tuple[Entity, dict]] = []
    for profile in ai_result.profiles:
        entity = Entity(
            id=id_factory(layout.primary_type, None),
            name=profile.name,
            type=layout.primary_type,
            short_code=primary_code(layout, profile.name),
            schedule=copy.deepcopy(profile.schedule),
        )
        primaries.append((entity, profile.schedule))

    secondaries: list[Entity] = []
    for code, real_name in mappings.items():
        real_name = (real_name or "").strip()
        if not real_name:
            continue

        secondary = Entity(
            id=id_factory(layout.secondary_type, code),
            name=real_name,
            type=layout.secondary_type,
            short_code=secondary_code(layout, code, real_name),
        )

        for primary, extracted in primaries:
            for day, slots in extracted.items():
                for period, entry in (slots or {}).items():
                    if entry is None or entry.teacher_or_class != code:
                        continue
                    if secondary.short_code:
                        primary.schedule[day][period].teacher_or_class = secondary.short_code
                    secondary.schedule.setdefault(day, {})[period] = TimetableEntry(
                        subject=entry.subject,
                        room=entry.room,
                        teacher_or_class=primary.identifier,
                    )
        secondaries.append(secondary)

    new_entities = [entity for entity, _ in primaries] + secondaries
    logger.info(
        "import_finalized",
        detected_type=layout.value,
        primary_count=len(primaries),
        secondary_count=len(secondaries),
        unresolved_codes=sorted(set(ai_result.unknown_codes) - set(mappings)),
    )
    return list(existing) + new_entities


class ImportSession:
    """Tracks one AI timetable import from upload to review and merge."""

    def __init__(self, provider: ImportProvider) -> None:
        self._provider = provider
        self._lock = threading.Lock()
        self._generation = 0
        self.status = ImportStatus.IDLE
        self.result: AiImportResult | None = None
        self.error: str | None = None

    def start(self, *, document: TimetableDocument | None = None, text: str | None = None) -> ImportStatus:
        with self._lock:
            if self.status is ImportStatus.PROCESSING:
                raise ImportInProgressError("An AI import is already being processed.")
            self._generation += 1
            generation = self._generation
            self.status = ImportStatus.PROCESSING
            self.result = None
            self.error = None

        logger.info("import_started", has_document=document is not None, has_text=bool(text))
        try:
            result = self._provider.extract_timetable(document=document, text=text)
        except AiGatewayError as exc:
            logger.warning("import_failed", error=str(exc))
            return self._fail(generation, str(exc))
        except Exception as exc:
            logger.exception("import_crashed")
            return self._fail(generation, f"Unexpected import failure: {exc}")

        with self._lock:
            if generation != self._generation or self.status is not ImportStatus.PROCESSING:
                logger.info("import_result_discarded")
                return self.status
            self.result = result
            self.status = ImportStatus.REVIEW
        return self.status

    def _fail(self, generation: int, message: str) -> ImportStatus:
        with self._lock:
            if generation == self._generation and self.status is ImportStatus.PROCESSING:
                self.status = ImportStatus.ERROR
                self.error = message
            return self.status

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self.status = ImportStatus.IDLE
            self.result = None
            self.error = None

    def finalize(
        self,
        existing: Sequence[Entity],
        mappings: Mapping[str, str],
        commit: Callable[[list[Entity]], object] | None = None,
    ) -> list[Entity]:
        """Merge the reviewed result; the review is kept if ``commit`` raises."""

        with self._lock:
            if self.status is not ImportStatus.REVIEW or self.result is None:
                raise NoImportToFinalizeError("There is no extracted timetable awaiting review.")
            merged = finalize(existing, self.result, mappings)
            if commit is not None:
                commit(merged)
            self.status = ImportStatus.COMPLETED
            self.result = None
        return merged
