"""Tests for conversation sessions and the persona engine."""

from __future__ import annotations

import asyncio

import pytest

from persona_studio.conversation.engine import PersonaEngine
from persona_studio.conversation.session import FALLBACK_REPLY, ConversationSession, fallback_greeting
from persona_studio.core.errors import InvalidPersonaIdError, SessionError


def _train(db, persona_id: str) -> None:
    db.update(
        "personas",
        {"id": persona_id},
        {"status": "active", "metadata": {"systemPrompt": "You are Rose.", "voiceCharacteristics": {"tone": "soft"}}},
    )


def _session(db, persona, fake_llm, settings, conversation_type="chat") -> ConversationSession:
    return ConversationSession(
        persona_id=persona.id,
        persona_name=persona.name,
        conversation_type=conversation_type,
        database=db,
        engine_loader=lambda pid: PersonaEngine.load_trained_persona(pid, db, fake_llm, settings),
        settings=settings,
    )


def test_untrained_persona_uses_fallbacks(db, persona, fake_llm, settings) -> None:
    session = _session(db, persona, fake_llm, settings)

    async def scenario():
        await session.open()
        return await session.send_message("Hi Grandma!")

    result = asyncio.run(scenario())

    assert not session.trained
    greeting = session.transcript.first()
    assert greeting.sender_type == "persona"
    assert greeting.content == fallback_greeting("Grandma Rose")
    assert result.reply is not None and result.reply.content == FALLBACK_REPLY
    assert result.error is None
    assert fake_llm.calls == []
    assert [m.sender_type for m in session.transcript] == ["persona", "user", "persona"]

    stored = {row["sender_type"]: row for row in db.select("messages", {"conversation_id": session.conversation_id})}
    assert sorted(stored) == ["persona", "user"]
    assert stored["user"]["metadata"]["local_id"] == result.user_message.id
    assert stored["persona"]["content"] == FALLBACK_REPLY


def test_trained_persona_replies_with_history(db, persona, fake_llm, settings) -> None:
    _train(db, persona.id)
    session = _session(db, persona, fake_llm, settings, conversation_type="voice_call")

    async def scenario():
        await session.open()
        await session.send_message("How is the garden?")
        return await session.send_message("And the tomatoes?")

    result = asyncio.run(scenario())

    assert session.trained
    assert session.engine.voice_characteristics.tone == "soft"
    assert result.reply.content == "Hello from the persona."
    last_call = fake_llm.calls[-1]
    roles = [message["role"] for message in last_call["messages"]]
    assert roles == ["system", "assistant", "user", "assistant", "user"]
    assert last_call["messages"][0]["content"] == "You are Rose."
    assert last_call["messages"][-1]["content"] == "And the tomatoes?"
    assert (last_call["max_tokens"], last_call["temperature"]) == (500, 0.8)
    conversation = db.get("conversations", session.conversation_id)
    assert conversation["conversation_type"] == "voice_call"


def test_history_window_is_bounded(db, persona, fake_llm, settings) -> None:
    _train(db, persona.id)
    narrow = settings.model_copy(update={"conversation_history_turns": 2})
    session = _session(db, persona, fake_llm, narrow)

    async def scenario():
        await session.open()
        for text in ("one", "two", "three"):
            await session.send_message(text)

    asyncio.run(scenario())
    assert len(fake_llm.calls[-1]["messages"]) == 4


def test_slow_reply_times_out_and_clears_typing(db, persona, fake_llm, settings) -> None:
    _train(db, persona.id)
    fake_llm.delay = 0.3
    impatient = settings.model_copy(update={"reply_timeout_seconds": 0.05})
    session = _session(db, persona, fake_llm, impatient)

    async def scenario():
        await session.open()
        return await session.send_message("Are you there?")

    result = asyncio.run(scenario())

    assert session.transcript.first().content == "Hello! It's Grandma Rose."
    assert result.reply is None
    assert result.error == "No reply within 0.05 seconds"
    assert session.is_typing is False
    assert [m.sender_type for m in session.transcript] == ["persona", "user"]


def test_reply_error_is_reported(db, persona, fake_llm, settings) -> None:
    _train(db, persona.id)
    session = _session(db, persona, fake_llm, settings)

    async def scenario():
        await session.open()
        fake_llm.chat_reply = RuntimeError("model unavailable")
        return await session.send_message("Hello?")

    result = asyncio.run(scenario())
    assert result.error == "model unavailable"
    assert result.user_message.content == "Hello?"
    assert session.is_typing is False


def test_end_records_duration_and_closes(db, persona, fake_llm, settings) -> None:
    session = _session(db, persona, fake_llm, settings)

    async def scenario():
        await session.open()
        return await session.end()

    duration = asyncio.run(scenario())

    assert duration >= 0
    assert session.is_closed
    row = db.get("conversations", session.conversation_id)
    assert row["ended_at"] is not None
    assert row["duration_seconds"] == duration
    with pytest.raises(SessionError):
        asyncio.run(session.send_message("still there?"))


def test_open_rejects_invalid_persona(db, fake_llm, settings, persona) -> None:
    persona.id = "persona-1"
    session = _session(db, persona, fake_llm, settings)
    with pytest.raises(InvalidPersonaIdError):
        asyncio.run(session.open())


def test_empty_message_rejected(db, persona, fake_llm, settings) -> None:
    session = _session(db, persona, fake_llm, settings)
    asyncio.run(session.open())
    with pytest.raises(SessionError):
        asyncio.run(session.send_message("   "))


def test_generate_requires_loaded_engine(db, persona, fake_llm, settings) -> None:
    session = _session(db, persona, fake_llm, settings)
    assert session.engine is None
    with pytest.raises(SessionError):
        asyncio.run(session._generate("Hi", []))
    assert fake_llm.calls == []
