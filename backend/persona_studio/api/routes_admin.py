"""Liveness and metrics routes for Persona Studio."""

from __future__ import annotations

import sqlite3

from fastapi import APIRouter

from persona_studio.api.dependencies import get_app_settings, get_database, get_object_store
from persona_studio.core.logging import get_logger
from persona_studio.core.metrics import metrics_response
from persona_studio.storage.object_store import LocalObjectStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health", summary="Liveness plus database and bucket readiness")
def health() -> dict[str, bool]:
    database_ok = True
    try:
        get_database().connect().execute("SELECT 1")
    except sqlite3.Error as exc:
        logger.error("Health check could not reach the database: %s", exc)
        database_ok = False

    store = get_object_store()
    bucket = get_app_settings().storage_bucket
    if isinstance(store, LocalObjectStore):
        bucket_ok = (store.root / bucket).is_dir()
    else:
        bucket_ok = True
    return {"ok": True, "database": database_ok, "bucket": bucket_ok}


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]
