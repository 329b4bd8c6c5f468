"""Completion and transcription clients."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from openai import OpenAI

from persona_studio.core.config import Settings
from persona_studio.core.logging import get_logger

logger = get_logger(__name__)

ChatMessage = dict[str, Any]


class LLMClient(Protocol):
    """Request/response contract for the hosted model API."""

    def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float | None = None,
    ) -> str: ...

    def transcribe(self, data: bytes, filename: str = "audio.mp3") -> str: ...


class OpenAIClient:
    """LLMClient backed by the OpenAI chat completions and audio APIs."""

    def __init__(self, settings: Settings, client: OpenAI | None = None) -> None:
        self.settings = settings
        self._client = client or OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.llm_timeout,
            max_retries=0,
        )

    def complete(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {"model": model, "messages": list(messages), "max_tokens": max_tokens}
        if temperature is not None:
            kwargs["temperature"] = temperature
        response = self._client.chat.completions.create(**kwargs)
        content = response.choices[0].message.content if response.choices else None
        logger.debug("Completion from %s (%s chars)", model, len(content or ""))
        return content or ""

    def transcribe(self, data: bytes, filename: str = "audio.mp3") -> str:
        transcription = self._client.audio.transcriptions.create(
            file=(filename, data),
            model=self.settings.transcription_model,
            response_format="text",
        )
        # response_format="text" yields a plain string
        return transcription if isinstance(transcription, str) else getattr(transcription, "text", "")


__all__ = ["LLMClient", "OpenAIClient", "ChatMessage"]
