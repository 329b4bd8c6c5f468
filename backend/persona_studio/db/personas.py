"""Persona and content record queries."""

from __future__ import annotations

from persona_studio.core.errors import InvalidPersonaIdError, NotFoundError
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.models.entities import ContentRecord, Persona
from persona_studio.utils.ids import is_valid_uuid, new_uuid
from persona_studio.utils.time import utc_now_iso


def create_persona(db: SQLiteDatabase, name: str, description: str | None = None) -> Persona:
    now = utc_now_iso()
    row = db.insert(
        "personas",
        {
            "id": new_uuid(),
            "name": name,
            "description": description,
            "status": "draft",
            "training_progress": 0,
            "speech_patterns": [],
            "common_phrases": [],
            "memories": [],
            "metadata": {},
            "created_at": now,
            "updated_at": now,
        },
    )
    return Persona.from_row(row)


def get_persona(db: SQLiteDatabase, persona_id: str) -> Persona:
    """Fetch a persona, validating the identifier before touching the store."""
    if not is_valid_uuid(persona_id):
        raise InvalidPersonaIdError(persona_id)
    row = db.get("personas", persona_id)
    if row is None:
        raise NotFoundError("Persona not found")
    return Persona.from_row(row)


def list_content(db: SQLiteDatabase, persona_id: str, status: str | None = None) -> list[ContentRecord]:
    if not is_valid_uuid(persona_id):
        raise InvalidPersonaIdError(persona_id)
    filters: dict[str, str] = {"persona_id": persona_id}
    if status:
        filters["processing_status"] = status
    return [ContentRecord.from_row(row) for row in db.select("persona_content", filters, order_by="created_at")]


__all__ = ["create_persona", "get_persona", "list_content"]
