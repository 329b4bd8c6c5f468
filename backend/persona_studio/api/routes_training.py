"""Training routes."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, BackgroundTasks, Depends

from persona_studio.api.dependencies import get_database, get_training_orchestrator
from persona_studio.api.errors import http_error
from persona_studio.core.errors import PersonaStudioError
from persona_studio.db.personas import get_persona
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.models.dto import TrainingStatusResponse, TrainingStepResponse
from persona_studio.training.orchestrator import TrainingOrchestrator

router = APIRouter()


def _orchestrator(persona_id: str, db: SQLiteDatabase) -> TrainingOrchestrator:
    try:
        get_persona(db, persona_id)
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return get_training_orchestrator(persona_id)


@router.post(
    "/{persona_id}/training",
    response_model=TrainingStatusResponse,
    status_code=202,
    summary="Start persona training",
)
async def start_training(
    persona_id: str,
    background_tasks: BackgroundTasks,
    db: SQLiteDatabase = Depends(get_database),
) -> TrainingStatusResponse:
    orchestrator = _orchestrator(persona_id, db)
    try:
        orchestrator.begin()
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    background_tasks.add_task(orchestrator.run)
    return _status_response(orchestrator)


@router.get("/{persona_id}/training", response_model=TrainingStatusResponse, summary="Training progress")
async def training_status(persona_id: str, db: SQLiteDatabase = Depends(get_database)) -> TrainingStatusResponse:
    return _status_response(_orchestrator(persona_id, db))


@router.post("/{persona_id}/training/reset", response_model=TrainingStatusResponse, summary="Reset training steps")
async def reset_training(persona_id: str, db: SQLiteDatabase = Depends(get_database)) -> TrainingStatusResponse:
    orchestrator = _orchestrator(persona_id, db)
    try:
        orchestrator.reset()
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return _status_response(orchestrator)


def _status_response(orchestrator: TrainingOrchestrator) -> TrainingStatusResponse:
    snapshot = orchestrator.snapshot()
    return TrainingStatusResponse(
        persona_id=snapshot.persona_id,
        steps=[TrainingStepResponse(**asdict(step)) for step in snapshot.steps],
        overall_progress=snapshot.overall_progress,
        is_training=snapshot.is_training,
        is_complete=snapshot.is_complete,
        error=snapshot.error,
    )


__all__ = ["router"]
