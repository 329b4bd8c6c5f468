"""Translate domain errors into HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException

from persona_studio.core.errors import (
    FileTooLargeError,
    InvalidPersonaIdError,
    NotFoundError,
    PersistenceError,
    PersistenceErrorKind,
    PersonaStudioError,
    SessionError,
    StorageError,
    TrainingConflictError,
)


def http_error(exc: PersonaStudioError) -> HTTPException:
    if isinstance(exc, InvalidPersonaIdError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, FileTooLargeError):
        return HTTPException(status_code=413, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TrainingConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, SessionError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, PersistenceError):
        status = 404 if exc.kind is PersistenceErrorKind.FOREIGN_KEY else 500
        detail = f"{exc.message} ({exc.hint})" if exc.hint else exc.message
        return HTTPException(status_code=status, detail=detail)
    if isinstance(exc, StorageError):
        return HTTPException(status_code=503, detail=exc.message)
    return HTTPException(status_code=500, detail=str(exc))


__all__ = ["http_error"]
