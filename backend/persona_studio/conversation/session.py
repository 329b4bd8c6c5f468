"""Conversation sessions between a user and a persona."""

from __future__ import annotations

import asyncio
from typing import Callable

from persona_studio.conversation.engine import PersonaEngine
from persona_studio.conversation.types import CONVERSATION_TYPES, Message, MessageLog, SendResult, SenderType
from persona_studio.core.config import Settings
from persona_studio.core.errors import InvalidPersonaIdError, PersistenceError, SessionError
from persona_studio.core.logging import get_logger
from persona_studio.core.metrics import MESSAGE_COUNT
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.utils.ids import is_valid_uuid, new_id, new_uuid
from persona_studio.utils.time import elapsed_seconds, utc_now, utc_now_iso

logger = get_logger(__name__)

GREETING_PROMPT = "Hello, it's so good to see you!"
FALLBACK_REPLY = (
    "I'm still learning about this persona. Please complete the AI training for more personalized responses."
)

EngineLoader = Callable[[str], PersonaEngine | None]


def fallback_greeting(persona_name: str) -> str:
    return (
        f"Hello! I'm still learning about {persona_name}. "
        "Please complete the AI training first for more personalized conversations."
    )


class ConversationSession:
    """One chat or call session.

    The transcript is local and optimistic: the user's message is appended
    before it is persisted and is never rolled back. Replies are awaited for
    at most ``reply_timeout_seconds``.
    """

    def __init__(
        self,
        persona_id: str,
        persona_name: str,
        conversation_type: str,
        database: SQLiteDatabase,
        engine_loader: EngineLoader,
        settings: Settings,
    ) -> None:
        self.persona_id = persona_id
        self.persona_name = persona_name
        self.conversation_type = conversation_type
        self.db = database
        self.engine_loader = engine_loader
        self.settings = settings
        self.transcript = MessageLog()
        self.conversation_id: str | None = None
        self.engine: PersonaEngine | None = None
        self.duration_seconds: int | None = None
        self._typing = False
        self._closed = False

    @property
    def is_typing(self) -> bool:
        return self._typing

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def trained(self) -> bool:
        return self.engine is not None

    async def open(self) -> str:
        """Create the session record, load the engine and add the greeting."""
        if not is_valid_uuid(self.persona_id):
            raise InvalidPersonaIdError(self.persona_id)
        if self.conversation_type not in CONVERSATION_TYPES:
            raise SessionError(f"Unknown conversation type: {self.conversation_type}")
        try:
            record = await asyncio.to_thread(
                self.db.insert,
                "conversations",
                {
                    "id": new_uuid(),
                    "persona_id": self.persona_id,
                    "conversation_type": self.conversation_type,
                    "started_at": utc_now_iso(),
                    "metadata": {},
                },
            )
        except PersistenceError as exc:
            logger.error("Error creating conversation: %s", exc.message, extra={"ctx_persona_id": self.persona_id})
            hint = f" ({exc.hint})" if exc.hint else ""
            raise SessionError(f"Could not start conversation: {exc.message}{hint}") from exc
        self.conversation_id = record["id"]

        self.engine = await asyncio.to_thread(self.engine_loader, self.persona_id)
        if self.engine is not None:
            try:
                greeting = await self._generate(GREETING_PROMPT, [])
            except Exception:
                logger.exception("Error generating greeting", extra={"ctx_conversation_id": self.conversation_id})
                greeting = f"Hello! It's {self.persona_name}."
        else:
            greeting = fallback_greeting(self.persona_name)
        self.transcript.append(self._message("persona", greeting))
        logger.info(
            "Conversation started (%s, trained=%s)",
            self.conversation_type,
            self.trained,
            extra={"ctx_conversation_id": self.conversation_id},
        )
        return self.conversation_id

    async def send_message(self, text: str) -> SendResult:
        if self.conversation_id is None:
            raise SessionError("Conversation has not been started")
        if self._closed:
            raise SessionError("Conversation has ended")
        if not text.strip():
            raise SessionError("Message is empty")

        history = self.transcript.items()
        user_message = self._message("user", text)
        self.transcript.append(user_message)
        result = SendResult(user_message=user_message)
        self._typing = True
        try:
            await asyncio.to_thread(self._persist, user_message)
            reply_text = await self._generate(text, history) if self.engine is not None else FALLBACK_REPLY
            if self._closed:
                logger.info("Dropping reply for ended conversation", extra={"ctx_conversation_id": self.conversation_id})
                return result
            reply = self._message("persona", reply_text)
            self.transcript.append(reply)
            self._typing = False
            result.reply = reply
            await asyncio.to_thread(self._persist, reply)
        except asyncio.TimeoutError:
            result.error = f"No reply within {self.settings.reply_timeout_seconds:g} seconds"
            logger.warning(result.error, extra={"ctx_conversation_id": self.conversation_id})
        except Exception as exc:
            result.error = str(exc) or exc.__class__.__name__
            logger.exception("Error sending message", extra={"ctx_conversation_id": self.conversation_id})
        finally:
            self._typing = False
        return result

    async def end(self) -> int:
        """Close the session and record its duration in whole seconds."""
        if self.conversation_id is None:
            raise SessionError("Conversation has not been started")
        if self._closed:
            raise SessionError("Conversation has ended")
        self._closed = True
        ended = utc_now()
        first = self.transcript.first()
        self.duration_seconds = elapsed_seconds(first.timestamp if first else None, ended)
        try:
            await asyncio.to_thread(
                self.db.update,
                "conversations",
                {"id": self.conversation_id},
                {"ended_at": ended.isoformat(), "duration_seconds": self.duration_seconds},
            )
        except PersistenceError as exc:
            logger.error("Error ending conversation: %s", exc.message, extra={"ctx_conversation_id": self.conversation_id})
            raise SessionError(f"Could not end conversation: {exc.message}") from exc
        return self.duration_seconds

    async def _generate(self, text: str, history: list[Message]) -> str:
        engine = self.engine
        if engine is None:
            raise SessionError("Persona has no trained engine")
        return await asyncio.wait_for(
            asyncio.to_thread(engine.generate_response, text, history),
            timeout=self.settings.reply_timeout_seconds,
        )

    def _message(self, sender: SenderType, content: str) -> Message:
        return Message(id=new_id("msg"), sender_type=sender, content=content, timestamp=utc_now_iso())

    def _persist(self, message: Message) -> None:
        self.db.insert(
            "messages",
            {
                "id": new_uuid(),
                "conversation_id": self.conversation_id,
                "sender_type": message.sender_type,
                "content": message.content,
                "message_type": message.message_type,
                "metadata": {"local_id": message.id},
                "created_at": message.timestamp,
            },
        )
        MESSAGE_COUNT.labels(message.sender_type).inc()


__all__ = ["ConversationSession", "FALLBACK_REPLY", "GREETING_PROMPT", "fallback_greeting"]
