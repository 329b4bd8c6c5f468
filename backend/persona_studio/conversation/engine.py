"""Runtime wrapper that answers messages in a trained persona's voice."""

from __future__ import annotations

from typing import Any, Sequence

from persona_studio.conversation.types import Message
from persona_studio.core.config import Settings
from persona_studio.core.logging import get_logger
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.llm.client import ChatMessage, LLMClient
from persona_studio.models.entities import VoiceCharacteristics

logger = get_logger(__name__)

_ROLE_BY_SENDER = {"user": "user", "persona": "assistant"}


class PersonaEngine:
    def __init__(
        self,
        persona_id: str,
        system_prompt: str,
        llm: LLMClient,
        settings: Settings,
        voice_characteristics: VoiceCharacteristics | None = None,
    ) -> None:
        self.persona_id = persona_id
        self.system_prompt = system_prompt
        self.llm = llm
        self.settings = settings
        self.voice_characteristics = voice_characteristics

    @classmethod
    def load_trained_persona(
        cls,
        persona_id: str,
        database: SQLiteDatabase,
        llm: LLMClient,
        settings: Settings,
    ) -> "PersonaEngine | None":
        """Return an engine when training stored a system prompt, else None."""
        row = database.get("personas", persona_id)
        if row is None:
            return None
        metadata: dict[str, Any] = row.get("metadata") or {}
        system_prompt = metadata.get("systemPrompt")
        if not system_prompt:
            logger.info("Persona has no trained profile", extra={"ctx_persona_id": persona_id})
            return None
        return cls(
            persona_id=persona_id,
            system_prompt=system_prompt,
            llm=llm,
            settings=settings,
            voice_characteristics=VoiceCharacteristics.from_dict(metadata.get("voiceCharacteristics")),
        )

    def generate_response(self, message: str, history: Sequence[Message] = ()) -> str:
        turns = self.settings.conversation_history_turns
        recent = list(history)[-turns:] if turns > 0 else []
        messages: list[ChatMessage] = [{"role": "system", "content": self.system_prompt}]
        messages.extend({"role": _ROLE_BY_SENDER[item.sender_type], "content": item.content} for item in recent)
        messages.append({"role": "user", "content": message})
        reply = self.llm.complete(self.settings.completion_model, messages, max_tokens=500, temperature=0.8)
        return reply.strip()


__all__ = ["PersonaEngine"]
