"""Shared FastAPI dependencies and per-persona state registries."""

from __future__ import annotations

from collections import OrderedDict
from functools import lru_cache

from persona_studio.conversation.engine import PersonaEngine
from persona_studio.conversation.session import ConversationSession
from persona_studio.core.config import Settings, get_settings
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.llm.client import LLMClient, OpenAIClient
from persona_studio.storage.object_store import LocalObjectStore, ObjectStore
from persona_studio.training.orchestrator import TrainingOrchestrator
from persona_studio.training.pipeline import TrainingPipeline
from persona_studio.training.types import ProgressCallback
from persona_studio.uploads.coordinator import UploadCoordinator
from persona_studio.uploads.processing import ContentProcessor

_DB: SQLiteDatabase | None = None
_OBJECT_STORE: ObjectStore | None = None
_LLM: LLMClient | None = None
_COORDINATORS: dict[str, UploadCoordinator] = {}
_ORCHESTRATORS: dict[str, TrainingOrchestrator] = {}
_SESSIONS: dict[str, ConversationSession] = {}
# Ended sessions stay readable until this many newer ones have ended.
ENDED_SESSIONS_KEPT = 32
_ENDED_SESSIONS: OrderedDict[str, ConversationSession] = OrderedDict()


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_object_store() -> ObjectStore:
    global _OBJECT_STORE
    if _OBJECT_STORE is None:
        settings = get_app_settings()
        store = LocalObjectStore(settings.storage_root, settings.public_base_url, timeout=settings.llm_timeout)
        store.create_bucket(settings.storage_bucket)
        _OBJECT_STORE = store
    return _OBJECT_STORE


def get_llm_client() -> LLMClient:
    global _LLM
    if _LLM is None:
        _LLM = OpenAIClient(get_app_settings())
    return _LLM


def get_upload_coordinator(persona_id: str) -> UploadCoordinator:
    coordinator = _COORDINATORS.get(persona_id)
    if coordinator is None:
        database = get_database()
        coordinator = UploadCoordinator(
            persona_id=persona_id,
            object_store=get_object_store(),
            database=database,
            settings=get_app_settings(),
            processor=ContentProcessor(database),
        )
        _COORDINATORS[persona_id] = coordinator
    return coordinator


def get_training_orchestrator(persona_id: str) -> TrainingOrchestrator:
    orchestrator = _ORCHESTRATORS.get(persona_id)
    if orchestrator is None:

        def pipeline_factory(pid: str, on_progress: ProgressCallback) -> TrainingPipeline:
            return TrainingPipeline(
                persona_id=pid,
                database=get_database(),
                object_store=get_object_store(),
                llm=get_llm_client(),
                settings=get_app_settings(),
                on_progress=on_progress,
            )

        orchestrator = TrainingOrchestrator(persona_id, get_database(), pipeline_factory)
        _ORCHESTRATORS[persona_id] = orchestrator
    return orchestrator


def new_conversation_session(persona_id: str, persona_name: str, conversation_type: str) -> ConversationSession:
    def load_engine(pid: str) -> PersonaEngine | None:
        return PersonaEngine.load_trained_persona(pid, get_database(), get_llm_client(), get_app_settings())

    return ConversationSession(
        persona_id=persona_id,
        persona_name=persona_name,
        conversation_type=conversation_type,
        database=get_database(),
        engine_loader=load_engine,
        settings=get_app_settings(),
    )


def register_session(session: ConversationSession) -> None:
    if session.conversation_id is None:
        raise ValueError("Session must be opened before registration")
    _SESSIONS[session.conversation_id] = session


def get_session(conversation_id: str) -> ConversationSession | None:
    session = _SESSIONS.get(conversation_id)
    if session is None:
        session = _ENDED_SESSIONS.get(conversation_id)
    return session


def retire_session(conversation_id: str) -> None:
    """Move an ended session out of the live registry, evicting the oldest ended ones."""
    session = _SESSIONS.pop(conversation_id, None)
    if session is None:
        return
    _ENDED_SESSIONS[conversation_id] = session
    while len(_ENDED_SESSIONS) > ENDED_SESSIONS_KEPT:
        _ENDED_SESSIONS.popitem(last=False)


def reset_state() -> None:
    """Drop every singleton and registry; used on shutdown and by tests."""
    global _DB, _OBJECT_STORE, _LLM
    for coordinator in _COORDINATORS.values():
        coordinator.close()
    _COORDINATORS.clear()
    _ORCHESTRATORS.clear()
    _SESSIONS.clear()
    _ENDED_SESSIONS.clear()
    if _DB is not None:
        _DB.close()
    _DB = None
    _OBJECT_STORE = None
    _LLM = None
    get_app_settings.cache_clear()
    get_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_database",
    "get_object_store",
    "get_llm_client",
    "get_upload_coordinator",
    "get_training_orchestrator",
    "new_conversation_session",
    "register_session",
    "get_session",
    "reset_state",
]
