from __future__ import annotations

from typing import Callable, Iterable

from timetable_app.logging import get_logger
from timetable_app.models import ChatMessage, Entity, TimeSlot

from .ai_gateway import AiGatewayError, ChatProvider

logger = get_logger(__name__)

CHAT_ERROR_REPLY = "Error processing request."

# school name, entities, time slots as they are when a question is sent
AssistantContext = Callable[[], tuple[str, Iterable[Entity], Iterable[TimeSlot]]]


class AssistantSession:
    """Conversation with the timetable assistant for one school."""

    def __init__(self, provider: ChatProvider, context: AssistantContext) -> None:
        self._provider = provider
        self._context = context
        school_name, _, _ = context()
        self.messages: list[ChatMessage] = [
            ChatMessage(
                role="model",
                text=(
                    f"Hello! I am the {school_name} Assistant. "
                    "Ask me about the timetable, teachers, or class schedules."
                ),
            )
        ]

    def send(self, question: str) -> ChatMessage | None:
        if not question or not question.strip():
            return None

        self.messages.append(ChatMessage(role="user", text=question))
        school_name, entities, time_slots = self._context()
        try:
            reply = self._provider.answer(
                question,
                school_name=school_name,
                entities=entities,
                time_slots=time_slots,
            )
        except AiGatewayError as exc:
            logger.warning("assistant_request_failed", error=str(exc))
            reply = CHAT_ERROR_REPLY

        message = ChatMessage(role="model", text=reply)
        self.messages.append(message)
        return message
