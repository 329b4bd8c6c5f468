"""Upload and storage routes."""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import asdict

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from persona_studio.api.dependencies import get_database, get_object_store, get_upload_coordinator
from persona_studio.api.errors import http_error
from persona_studio.core.errors import PersonaStudioError, StorageError, StorageErrorKind
from persona_studio.db.personas import get_persona
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.models.dto import (
    NoticeResponse,
    StorageProbeResponse,
    UploadBatchResponse,
    UploadedFileResponse,
    UploadStateResponse,
)
from persona_studio.storage.object_store import LocalObjectStore, ObjectStore
from persona_studio.uploads.coordinator import UploadCoordinator
from persona_studio.uploads.types import IncomingFile, StorageProbe, UploadedFile

router = APIRouter()
storage_router = APIRouter()


def _coordinator(persona_id: str, db: SQLiteDatabase) -> UploadCoordinator:
    try:
        get_persona(db, persona_id)
    except PersonaStudioError as exc:
        raise http_error(exc) from exc
    return get_upload_coordinator(persona_id)


@router.get("/{persona_id}/uploads", response_model=UploadStateResponse, summary="List local uploads")
async def list_uploads(persona_id: str, db: SQLiteDatabase = Depends(get_database)) -> UploadStateResponse:
    coordinator = _coordinator(persona_id, db)
    return UploadStateResponse(
        accepting=coordinator.accepting,
        is_uploading=coordinator.is_uploading,
        files=[_file_response(item) for item in coordinator.files()],
    )


@router.post("/{persona_id}/uploads", response_model=UploadBatchResponse, summary="Upload a batch of files")
async def upload_files(
    persona_id: str,
    files: list[UploadFile] = File(...),
    db: SQLiteDatabase = Depends(get_database),
) -> UploadBatchResponse:
    coordinator = _coordinator(persona_id, db)
    incoming: list[IncomingFile] = []
    for upload in files:
        name = upload.filename or "upload"
        mime_type = upload.content_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
        incoming.append(IncomingFile(name=name, data=await upload.read(), mime_type=mime_type))
    result = await coordinator.upload_batch(incoming)
    response = UploadBatchResponse(
        rejected=result.rejected,
        files=[_file_response(item) for item in result.files],
        notices=[NoticeResponse(level=notice.level, message=notice.message) for notice in result.notices],
    )
    if result.rejected:
        raise HTTPException(status_code=409, detail=response.model_dump())
    return response


@router.delete("/{persona_id}/uploads/{file_id}", summary="Remove a file from the local list")
async def remove_upload(persona_id: str, file_id: str, db: SQLiteDatabase = Depends(get_database)) -> dict[str, bool]:
    coordinator = _coordinator(persona_id, db)
    if not coordinator.remove(file_id):
        raise HTTPException(status_code=404, detail="Upload not found")
    return {"removed": True}


@router.get("/{persona_id}/storage", response_model=StorageProbeResponse, summary="Storage access check")
async def storage_status(persona_id: str, db: SQLiteDatabase = Depends(get_database)) -> StorageProbeResponse:
    coordinator = _coordinator(persona_id, db)
    return _probe_response(await asyncio.to_thread(coordinator.probe_storage))


@router.post("/{persona_id}/storage/retry", response_model=StorageProbeResponse, summary="Re-run storage check")
async def retry_storage(persona_id: str, db: SQLiteDatabase = Depends(get_database)) -> StorageProbeResponse:
    coordinator = _coordinator(persona_id, db)
    return _probe_response(await asyncio.to_thread(coordinator.probe_storage, True))


@storage_router.get("/storage/{bucket}/{path:path}", summary="Public object retrieval")
async def serve_object(bucket: str, path: str, store: ObjectStore = Depends(get_object_store)) -> FileResponse:
    if not isinstance(store, LocalObjectStore):
        raise HTTPException(status_code=404, detail="Object not found")
    try:
        target = store.open(bucket, path)
    except StorageError as exc:
        status = 404 if exc.kind in (StorageErrorKind.NOT_FOUND, StorageErrorKind.PERMISSION) else 500
        raise HTTPException(status_code=status, detail="Object not found") from exc
    return FileResponse(target, media_type=mimetypes.guess_type(target.name)[0] or "application/octet-stream")


def _file_response(item: UploadedFile) -> UploadedFileResponse:
    payload = asdict(item)
    payload.pop("path")
    return UploadedFileResponse(**payload)


def _probe_response(probe: StorageProbe) -> StorageProbeResponse:
    return StorageProbeResponse(
        ok=probe.ok,
        kind=probe.kind.value if probe.kind else None,
        message=probe.message,
        checked_at=probe.checked_at,
    )


__all__ = ["router", "storage_router"]
