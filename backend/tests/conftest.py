"""Test fixtures for Persona Studio."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from persona_studio.training.prompts import (  # noqa: E402
    PROFILE_SYNTHESIS_PROMPT,
    SPEECH_ANALYSIS_PROMPT,
    TEXT_ANALYSIS_PROMPT,
)

PROFILE_REPLY = """```json
{
  "personality": "Warm, curious and quick to laugh",
  "speechPatterns": ["short sentences", "asks questions back"],
  "commonPhrases": ["lovely day", "well, well"],
  "emotionalTone": "cheerful",
  "memories": ["grew tomatoes every summer", "taught school for thirty years"],
  "voiceCharacteristics": {"pitch": 0.4, "speed": 1.1, "tone": "soft"}
}
```"""


class FakeLLM:
    """In-memory LLMClient; replies are chosen by the system prompt of each request."""

    def __init__(self) -> None:
        self.by_prompt: dict[str, object] = {
            TEXT_ANALYSIS_PROMPT: '{"personality": "warm", "topics": ["gardening"]}',
            SPEECH_ANALYSIS_PROMPT: '{"speechPatterns": ["pauses often"]}',
            PROFILE_SYNTHESIS_PROMPT: PROFILE_REPLY,
        }
        self.chat_reply: object = "Hello from the persona."
        self.vision_reply = "Smiling person in a garden."
        self.transcript = "Well, well, what a lovely day."
        self.delay = 0.0
        self.calls: list[dict[str, object]] = []
        self.transcriptions: list[str] = []

    def complete(self, model, messages, max_tokens, temperature=None) -> str:
        messages = list(messages)
        self.calls.append(
            {"model": model, "messages": messages, "max_tokens": max_tokens, "temperature": temperature}
        )
        first = messages[0] if messages else {}
        if isinstance(first.get("content"), list):
            reply: object = self.vision_reply
        elif first.get("role") == "system" and first.get("content") in self.by_prompt:
            reply = self.by_prompt[first["content"]]
        else:
            if self.delay:
                time.sleep(self.delay)
            reply = self.chat_reply
        if isinstance(reply, Exception):
            raise reply
        return str(reply)

    def transcribe(self, data: bytes, filename: str = "audio.mp3") -> str:
        self.transcriptions.append(filename)
        return self.transcript


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("PSTU_DB_PATH", str(tmp_path / "studio.db"))
    monkeypatch.setenv("PSTU_STORAGE_ROOT", str(tmp_path / "objects"))
    monkeypatch.setenv("PSTU_PUBLIC_BASE_URL", "http://testserver")
    monkeypatch.setenv("PSTU_UPLOAD_SETTLE_SECONDS", "0")
    monkeypatch.delenv("PSTU_CONFIG", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    from persona_studio.api import dependencies as deps

    deps.reset_state()
    yield
    deps.reset_state()


@pytest.fixture
def settings():
    from persona_studio.core.config import Settings

    return Settings.from_yaml()


@pytest.fixture
def db(settings):
    from persona_studio.db.sqlite import SQLiteDatabase

    database = SQLiteDatabase(settings.db_path)
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def store(settings):
    from persona_studio.storage.object_store import LocalObjectStore

    object_store = LocalObjectStore(settings.storage_root, settings.public_base_url)
    object_store.create_bucket(settings.storage_bucket)
    return object_store


@pytest.fixture
def persona(db):
    from persona_studio.db.personas import create_persona

    return create_persona(db, "Grandma Rose", "Loves her garden")


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "I always say it's a lovely day for the garden.\n\nWell, well, look at those tomatoes!"
