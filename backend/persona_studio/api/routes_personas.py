"""Persona routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from persona_studio.api.dependencies import get_database
from persona_studio.api.errors import http_error
from persona_studio.core.errors import PersonaStudioError
from persona_studio.db.personas import create_persona, get_persona, list_content
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.models.dto import ContentRecordResponse, PersonaCreateRequest, PersonaResponse
from persona_studio.models.entities import ContentRecord, Persona

router = APIRouter()


@router.post("", response_model=PersonaResponse, status_code=201, summary="Create a persona")
async def create(request: PersonaCreateRequest, db: SQLiteDatabase = Depends(get_database)) -> PersonaResponse:
    try:
        persona = create_persona(db, request.name, request.description)
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return _persona_response(persona)


@router.get("/{persona_id}", response_model=PersonaResponse, summary="Fetch a persona")
async def show(persona_id: str, db: SQLiteDatabase = Depends(get_database)) -> PersonaResponse:
    try:
        persona = get_persona(db, persona_id)
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return _persona_response(persona)


@router.get("/{persona_id}/content", response_model=list[ContentRecordResponse], summary="List content records")
async def content(
    persona_id: str,
    status: str | None = None,
    db: SQLiteDatabase = Depends(get_database),
) -> list[ContentRecordResponse]:
    try:
        get_persona(db, persona_id)
        records = list_content(db, persona_id, status=status)
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return [_content_response(record) for record in records]


def _persona_response(persona: Persona) -> PersonaResponse:
    return PersonaResponse(
        id=persona.id,
        name=persona.name,
        description=persona.description,
        status=persona.status,
        training_progress=persona.training_progress,
        personality_traits=persona.personality_traits,
        speech_patterns=persona.speech_patterns,
        common_phrases=persona.common_phrases,
        emotional_tone=persona.emotional_tone,
        memories=persona.memories,
        trained=bool(persona.metadata.get("systemPrompt")),
        created_at=persona.created_at,
        updated_at=persona.updated_at,
    )


def _content_response(record: ContentRecord) -> ContentRecordResponse:
    return ContentRecordResponse(
        id=record.id,
        persona_id=record.persona_id,
        content_type=record.content_type,
        file_url=record.file_url,
        file_name=record.file_name,
        file_size=record.file_size,
        processing_status=record.processing_status,
        metadata=record.metadata,
        created_at=record.created_at,
    )


__all__ = ["router"]
