"""Upload data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from persona_studio.core.errors import StorageErrorKind

UploadStatus = Literal["uploading", "processing", "completed", "error"]
NoticeLevel = Literal["success", "error", "warning"]


@dataclass(slots=True)
class IncomingFile:
    """A user-selected file as received from the picker or multipart form."""

    name: str
    data: bytes
    mime_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(slots=True)
class UploadedFile:
    """Local view of one upload. Progress values are placeholders, not telemetry."""

    id: str
    name: str
    size: int
    mime_type: str
    path: str
    url: str = ""
    status: UploadStatus = "uploading"
    progress: int = 0
    content_type: str | None = None
    record_id: str | None = None
    error: str | None = None


@dataclass(slots=True)
class Notice:
    """User-visible notification for a terminal outcome."""

    level: NoticeLevel
    message: str


@dataclass(slots=True)
class StorageProbe:
    ok: bool
    kind: StorageErrorKind | None = None
    message: str | None = None
    checked_at: int = 0


@dataclass(slots=True)
class BatchResult:
    rejected: bool = False
    files: list[UploadedFile] = field(default_factory=list)
    notices: list[Notice] = field(default_factory=list)

    @property
    def completed(self) -> list[UploadedFile]:
        return [item for item in self.files if item.status == "completed"]

    @property
    def failed(self) -> list[UploadedFile]:
        return [item for item in self.files if item.status == "error"]


__all__ = [
    "IncomingFile",
    "UploadedFile",
    "UploadStatus",
    "Notice",
    "StorageProbe",
    "BatchResult",
]
