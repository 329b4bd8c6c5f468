"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class PersonaCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str | None = None


class PersonaResponse(BaseModel):
    id: str
    name: str
    description: str | None = None
    status: str
    training_progress: int
    personality_traits: str | None = None
    speech_patterns: list[str] = []
    common_phrases: list[str] = []
    emotional_tone: str | None = None
    memories: list[str] = []
    trained: bool = False
    created_at: str
    updated_at: str


class ContentRecordResponse(BaseModel):
    id: str
    persona_id: str
    content_type: str
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    processing_status: str
    metadata: dict[str, Any] = {}
    created_at: str


class UploadedFileResponse(BaseModel):
    id: str
    name: str
    size: int
    mime_type: str
    url: str
    status: Literal["uploading", "processing", "completed", "error"]
    progress: int
    content_type: str | None = None
    record_id: str | None = None
    error: str | None = None


class NoticeResponse(BaseModel):
    level: Literal["success", "error", "warning"]
    message: str


class UploadBatchResponse(BaseModel):
    rejected: bool
    files: list[UploadedFileResponse]
    notices: list[NoticeResponse]


class StorageProbeResponse(BaseModel):
    ok: bool
    kind: Literal["permission", "not_found", "other"] | None = None
    message: str | None = None
    checked_at: int


class UploadStateResponse(BaseModel):
    accepting: bool
    is_uploading: bool
    files: list[UploadedFileResponse]


class TrainingStepResponse(BaseModel):
    id: str
    name: str
    description: str
    status: Literal["pending", "processing", "completed", "error"]
    progress: int


class TrainingStatusResponse(BaseModel):
    persona_id: str
    steps: list[TrainingStepResponse]
    overall_progress: float
    is_training: bool
    is_complete: bool
    error: str | None = None


class ConversationCreateRequest(BaseModel):
    persona_id: str
    conversation_type: Literal["chat", "video_call", "voice_call"] = "chat"


class MessageRequest(BaseModel):
    content: str = Field(min_length=1)


class MessageResponse(BaseModel):
    id: str
    sender_type: Literal["user", "persona"]
    content: str
    timestamp: str
    message_type: Literal["text", "audio", "video"]


class ConversationResponse(BaseModel):
    id: str
    persona_id: str
    conversation_type: str
    trained: bool
    is_typing: bool
    ended: bool
    duration_seconds: int | None = None
    messages: list[MessageResponse]


class SendMessageResponse(BaseModel):
    user_message: MessageResponse
    reply: MessageResponse | None = None
    error: str | None = None


class EndConversationResponse(BaseModel):
    id: str
    duration_seconds: int


__all__ = [
    "PersonaCreateRequest",
    "PersonaResponse",
    "ContentRecordResponse",
    "UploadedFileResponse",
    "NoticeResponse",
    "UploadBatchResponse",
    "StorageProbeResponse",
    "UploadStateResponse",
    "TrainingStepResponse",
    "TrainingStatusResponse",
    "ConversationCreateRequest",
    "MessageRequest",
    "MessageResponse",
    "ConversationResponse",
    "SendMessageResponse",
    "EndConversationResponse",
]
