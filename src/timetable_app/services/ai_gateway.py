from __future__ import annotations

import base64
import io
import json
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Protocol

import requests
from PIL import Image, UnidentifiedImageError

from timetable_app.config.settings import Settings
from timetable_app.logging import get_logger
from timetable_app.models import AiImportResult, Entity, ImportLayout, RawProfile, TimeSlot
from timetable_app.models.timetable import schedule_from_dict

logger = get_logger(__name__)

TIMETABLE_SYSTEM_INSTRUCTION = """
You are an expert Timetable Data Extractor.
Analyze the provided document (PDF, image or text) and extract the timetable data exactly.

First decide whether the document is a "TEACHER_WISE" timetable (main headers are teacher names)
or a "CLASS_WISE" timetable (main headers are class names).

Return a JSON object with this exact structure:
{
  "detectedType": "TEACHER_WISE" or "CLASS_WISE",
  "profiles": [
    {
      "name": "Name of the teacher or class",
      "schedule": {
        "Mon": { "1": { "subject": "MATH", "room": "R1", "code": "The code found in this slot" } }
      }
    }
  ],
  "unknownCodes": ["every", "unique", "code", "found", "inside", "the", "slots"]
}

Rules:
1. In a teacher-wise timetable the "code" inside a slot is the class code (e.g. "10A", "G9").
2. In a class-wise timetable the "code" inside a slot is the teacher code (e.g. "JD", "SMT").
3. Extract every profile in the file.
4. Use the day keys Sat, Sun, Mon, Tue, Wed, Thu and period numbers as keys.
5. "unknownCodes" is the de-duplicated list of all codes found inside schedule slots.
"""

NO_CHAT_RESPONSE = "I couldn't generate a response."


class AiGatewayError(RuntimeError):
    """Raised when the hosted model cannot be reached or returns unusable output."""


@dataclass(slots=True)
class TimetableDocument:
    data: bytes
    mime_type: str

    @property
    def is_text(self) -> bool:
        return self.mime_type.startswith("text/")


class ImportProvider(Protocol):
    def extract_timetable(
        self,
        *,
        document: TimetableDocument | None = None,
        text: str | None = None,
    ) -> AiImportResult: ...


class ChatProvider(Protocol):
    def answer(self, question: str, *, school_name: str, entities: Iterable[Entity], time_slots: Iterable[TimeSlot]) -> str: ...


def detect_mime_type(data: bytes, filename: str | None = None) -> str:
    if data.startswith(b"%PDF"):
        return "application/pdf"

    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError):
        image_format = None

    if image_format:
        mime = Image.MIME.get(image_format)
        if mime:
            return mime

    if filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            return guessed
    return "text/plain"


def load_document(path: Path) -> TimetableDocument:
    data = path.read_bytes()
    return TimetableDocument(data=data, mime_type=detect_mime_type(data, path.name))


def _strip_code_fence(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    return cleaned.strip()


def _optional_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value).strip() or None


def _map_slot_codes(raw_schedule: Any) -> dict[str, dict[str, dict[str, Any]]]:
    """Rename each slot's generic ``code`` to the stored cross-reference key."""

    mapped: dict[str, dict[str, dict[str, Any]]] = {}
    if not isinstance(raw_schedule, dict):
        return mapped

    for day, slots in raw_schedule.items():
        mapped[day] = {}
        if not isinstance(slots, dict):
            continue
        for period, slot in slots.items():
            if not isinstance(slot, dict):
                continue
            mapped[day][str(period)] = {
                "subject": slot.get("subject"),
                "room": _optional_text(slot.get("room")),
                "teacherOrClass": _optional_text(slot.get("code")),
            }
    return mapped


def parse_import_payload(text: str) -> AiImportResult:
    """Convert the model's JSON answer into an import result."""

    try:
        data = json.loads(_strip_code_fence(text) or "{}")
    except json.JSONDecodeError as exc:
        raise AiGatewayError("The timetable extractor returned malformed JSON.") from exc

    if not isinstance(data, dict):
        raise AiGatewayError("The timetable extractor returned an unexpected payload.")

    try:
        detected = ImportLayout(data.get("detectedType") or ImportLayout.CLASS_WISE.value)
    except ValueError:
        detected = ImportLayout.CLASS_WISE

    raw_profiles = data.get("profiles") or []
    raw_codes = data.get("unknownCodes") or []
    if not isinstance(raw_profiles, list) or not isinstance(raw_codes, list):
        raise AiGatewayError("The timetable extractor returned profiles or codes that are not lists.")

    profiles = [
        RawProfile(
            name=str(raw.get("name") or "").strip(),
            schedule=schedule_from_dict(_map_slot_codes(raw.get("schedule"))),
        )
        for raw in raw_profiles
        if isinstance(raw, dict)
    ]

    unknown_codes: list[str] = []
    for code in raw_codes:
        value = str(code).strip()
        if value and value not in unknown_codes:
            unknown_codes.append(value)

    return AiImportResult(
        detected_type=detected,
        profiles=profiles,
        unknown_codes=unknown_codes,
        raw_text_response=text,
    )


def chat_context(school_name: str, entities: Iterable[Entity], time_slots: Iterable[TimeSlot]) -> str:
    scheduled = [entity.to_dict() for entity in entities if entity.has_schedule()]
    slots = [slot.to_dict() for slot in time_slots]
    return (
        f"You are an AI assistant for {school_name}.\n"
        f"Periods: {json.dumps(slots)}\n"
        f"Answer questions based on this data: {json.dumps(scheduled)}\n"
        "Be helpful and concise."
    )


class GeminiClient:
    """Generative Language REST client implementing both AI ports."""

    def __init__(self, settings: Settings, session: requests.Session | None = None) -> None:
        self._settings = settings
        self._session = session or requests.Session()

    def extract_timetable(
        self,
        *,
        document: TimetableDocument | None = None,
        text: str | None = None,
    ) -> AiImportResult:
        if document is not None and not document.is_text:
            part: dict[str, Any] = {
                "inlineData": {
                    "mimeType": document.mime_type,
                    "data": base64.b64encode(document.data).decode("ascii"),
                }
            }
        elif document is not None:
            part = {"text": document.data.decode("utf-8", errors="replace")}
        elif text and text.strip():
            part = {"text": text}
        else:
            raise AiGatewayError("Nothing to import: provide a document or timetable text.")

        body = {
            "systemInstruction": {"parts": [{"text": TIMETABLE_SYSTEM_INSTRUCTION}]},
            "contents": [{"role": "user", "parts": [part]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "thinkingConfig": {"thinkingBudget": self._settings.import_thinking_budget},
            },
        }
        response_text = self._generate(self._settings.import_model, body)
        result = parse_import_payload(response_text or "{}")
        logger.info(
            "timetable_extracted",
            detected_type=result.detected_type.value,
            profiles=len(result.profiles),
            unknown_codes=len(result.unknown_codes),
        )
        return result

    def answer(
        self,
        question: str,
        *,
        school_name: str,
        entities: Iterable[Entity],
        time_slots: Iterable[TimeSlot],
    ) -> str:
        body = {
            "systemInstruction": {"parts": [{"text": chat_context(school_name, entities, time_slots)}]},
            "contents": [{"role": "user", "parts": [{"text": question}]}],
        }
        return self._generate(self._settings.chat_model, body) or NO_CHAT_RESPONSE

    def _generate(self, model: str, body: dict[str, Any]) -> str:
        api_key = self._settings.gemini_api_key
        if not api_key:
            raise AiGatewayError("No Gemini API key configured. Set GEMINI_API_KEY in the environment.")

        url = f"{self._settings.gemini_base_url}/models/{model}:generateContent"
        try:
            response = self._session.post(
                url,
                json=body,
                headers={"x-goog-api-key": api_key},
                timeout=self._settings.ai_timeout_seconds,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            raise AiGatewayError(f"Request to {model} failed: {exc}") from exc
        except ValueError as exc:
            raise AiGatewayError(f"{model} returned a non-JSON response.") from exc

        return self._response_text(payload)

    @staticmethod
    def _response_text(payload: Any) -> str:
        if not isinstance(payload, dict):
            raise AiGatewayError("Unexpected response shape from the model.")
        candidates = payload.get("candidates") or []
        if not candidates:
            return ""
        first = candidates[0] if isinstance(candidates, list) else None
        if not isinstance(first, dict):
            raise AiGatewayError("Unexpected response shape from the model.")
        content = first.get("content") or {}
        if not isinstance(content, dict):
            raise AiGatewayError("Unexpected response shape from the model.")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise AiGatewayError("Unexpected response shape from the model.")
        return "".join(str(part.get("text") or "") for part in parts if isinstance(part, dict) and not part.get("thought"))
