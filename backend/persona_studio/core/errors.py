"""Error taxonomy shared by the upload, training and conversation flows."""

from __future__ import annotations

from enum import Enum


class PersonaStudioError(Exception):
    """Base class for every error surfaced to users."""


class InvalidPersonaIdError(PersonaStudioError):
    """Persona identifier missing or not a canonical UUID."""

    def __init__(self, persona_id: str | None = None) -> None:
        super().__init__("No valid persona selected. Please select a persona first.")
        self.persona_id = persona_id


class FileTooLargeError(PersonaStudioError):
    def __init__(self, name: str, size: int, limit: int) -> None:
        limit_mb = limit // (1024 * 1024)
        super().__init__(f"File size exceeds {limit_mb}MB limit. Please choose a smaller file.")
        self.name = name
        self.size = size
        self.limit = limit


class StorageErrorKind(str, Enum):
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    OTHER = "other"


class StorageError(PersonaStudioError):
    """Raised by object stores; ``kind`` is part of the store contract."""

    def __init__(self, kind: StorageErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class PersistenceErrorKind(str, Enum):
    FOREIGN_KEY = "foreign_key"
    PERMISSION = "permission"
    NO_ROWS = "no_rows"
    OTHER = "other"


_PERSISTENCE_HINTS: dict[PersistenceErrorKind, str] = {
    PersistenceErrorKind.FOREIGN_KEY: "Foreign key violation - persona not found",
    PersistenceErrorKind.PERMISSION: "Permission denied - check access policy",
    PersistenceErrorKind.NO_ROWS: "No rows returned - check access policy",
}


class PersistenceError(PersonaStudioError):
    """Raised by the relational store; ``kind`` selects the remediation hint."""

    def __init__(self, kind: PersistenceErrorKind, message: str, table: str | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.table = table

    @property
    def hint(self) -> str | None:
        return _PERSISTENCE_HINTS.get(self.kind)


class NotFoundError(PersonaStudioError):
    """Requested row does not exist."""


class PipelineError(PersonaStudioError):
    """Fatal training pipeline failure."""


class TrainingConflictError(PersonaStudioError):
    """Training already running for this persona."""


class SessionError(PersonaStudioError):
    """Conversation session could not be opened or used."""


__all__ = [
    "PersonaStudioError",
    "InvalidPersonaIdError",
    "FileTooLargeError",
    "StorageErrorKind",
    "StorageError",
    "PersistenceErrorKind",
    "PersistenceError",
    "NotFoundError",
    "PipelineError",
    "TrainingConflictError",
    "SessionError",
]
