"""Conversation routes."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from persona_studio.api.dependencies import (
    get_database,
    get_session,
    new_conversation_session,
    register_session,
    retire_session,
)
from persona_studio.api.errors import http_error
from persona_studio.conversation.session import ConversationSession
from persona_studio.conversation.types import Message
from persona_studio.core.errors import PersonaStudioError
from persona_studio.db.personas import get_persona
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.models.dto import (
    ConversationCreateRequest,
    ConversationResponse,
    EndConversationResponse,
    MessageRequest,
    MessageResponse,
    SendMessageResponse,
)

router = APIRouter()


@router.post("", response_model=ConversationResponse, status_code=201, summary="Open a conversation session")
async def open_conversation(
    request: ConversationCreateRequest,
    db: SQLiteDatabase = Depends(get_database),
) -> ConversationResponse:
    try:
        persona = get_persona(db, request.persona_id)
        session = new_conversation_session(persona.id, persona.name, request.conversation_type)
        await session.open()
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    register_session(session)
    return _conversation_response(session)


@router.get("/{conversation_id}", response_model=ConversationResponse, summary="Conversation transcript")
async def show_conversation(conversation_id: str) -> ConversationResponse:
    return _conversation_response(_session(conversation_id))


@router.post("/{conversation_id}/messages", response_model=SendMessageResponse, summary="Send a message")
async def send_message(conversation_id: str, request: MessageRequest) -> SendMessageResponse:
    session = _session(conversation_id)
    try:
        result = await session.send_message(request.content)
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return SendMessageResponse(
        user_message=_message_response(result.user_message),
        reply=_message_response(result.reply) if result.reply else None,
        error=result.error,
    )


@router.post("/{conversation_id}/end", response_model=EndConversationResponse, summary="End a conversation")
async def end_conversation(conversation_id: str) -> EndConversationResponse:
    session = _session(conversation_id)
    try:
        duration = await session.end()
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    retire_session(conversation_id)
    return EndConversationResponse(id=conversation_id, duration_seconds=duration)


def _session(conversation_id: str) -> ConversationSession:
    session = get_session(conversation_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return session


def _message_response(message: Message) -> MessageResponse:
    return MessageResponse(**asdict(message))


def _conversation_response(session: ConversationSession) -> ConversationResponse:
    return ConversationResponse(
        id=session.conversation_id or "",
        persona_id=session.persona_id,
        conversation_type=session.conversation_type,
        trained=session.trained,
        is_typing=session.is_typing,
        ended=session.is_closed,
        duration_seconds=session.duration_seconds,
        messages=[_message_response(message) for message in session.transcript],
    )


__all__ = ["router"]
