"""FastAPI application setup for Persona Studio."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from persona_studio.api.dependencies import (
    get_app_settings,
    get_database,
    get_object_store,
    reset_state,
)
from persona_studio.api.routes_admin import router as admin_router
from persona_studio.api.routes_conversations import router as conversations_router
from persona_studio.api.routes_personas import router as personas_router
from persona_studio.api.routes_training import router as training_router
from persona_studio.api.routes_uploads import router as uploads_router
from persona_studio.api.routes_uploads import storage_router
from persona_studio.core.logging import configure_logging
from persona_studio.core.metrics import REQUEST_COUNT

configure_logging()

app = FastAPI(
    title="Persona Studio",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(personas_router, prefix="/personas", tags=["personas"])
app.include_router(uploads_router, prefix="/personas", tags=["uploads"])
app.include_router(training_router, prefix="/personas", tags=["training"])
app.include_router(conversations_router, prefix="/conversations", tags=["conversations"])
app.include_router(storage_router, prefix="", tags=["storage"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.middleware("http")
async def count_requests(request: Request, call_next):
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", "unmatched")
    REQUEST_COUNT.labels(endpoint, request.method, str(response.status_code)).inc()
    return response


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    get_app_settings()
    get_database()
    get_object_store()


@app.on_event("shutdown")
async def shutdown() -> None:
    reset_state()
