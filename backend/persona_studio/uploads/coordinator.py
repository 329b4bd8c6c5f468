"""Upload coordination: validation, storage probe, transfer and metadata."""

from __future__ import annotations

import asyncio
import hashlib
from collections import OrderedDict
from dataclasses import replace
from typing import Sequence

from persona_studio.core.config import Settings
from persona_studio.core.errors import (
    FileTooLargeError,
    InvalidPersonaIdError,
    PersistenceError,
    PersonaStudioError,
    StorageError,
    StorageErrorKind,
)
from persona_studio.core.logging import get_logger
from persona_studio.core.metrics import UPLOAD_BYTES, UPLOAD_COUNT
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.storage.object_store import ObjectStore
from persona_studio.uploads.processing import ContentProcessor
from persona_studio.uploads.types import (
    BatchResult,
    IncomingFile,
    Notice,
    StorageProbe,
    UploadedFile,
)
from persona_studio.utils.ids import is_valid_uuid, new_id, new_uuid
from persona_studio.utils.text import format_file_size, sanitize_filename
from persona_studio.utils.time import now_ms, utc_now_iso

logger = get_logger(__name__)

PROBE_PAYLOAD = b"test"

_STORAGE_REMEDIATION: dict[StorageErrorKind, str] = {
    StorageErrorKind.PERMISSION: "Permission denied. Please check your storage bucket policies.",
    StorageErrorKind.NOT_FOUND: (
        'Storage bucket "{bucket}" not found. Please create it before uploading, '
        "with a {limit}MB file size limit."
    ),
    StorageErrorKind.OTHER: "Storage access error: {message}",
}


class UploadFailed(PersonaStudioError):
    """Per-file terminal failure carrying the user-facing message."""


def content_category(mime_type: str) -> str:
    """Map a declared MIME type onto a content category."""
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("video/"):
        return "video"
    if mime_type.startswith("audio/"):
        return "audio"
    if mime_type.startswith("image/"):
        return "image"
    return "text"


def storage_path(filename: str, uploaded_ms: int | None = None) -> str:
    """Object path derived from upload time and the sanitized filename."""
    stamp = uploaded_ms if uploaded_ms is not None else now_ms()
    return f"{stamp}-{sanitize_filename(filename)}"


def describe_persistence_error(exc: PersistenceError) -> str:
    message = f"Database save failed: {exc.message or 'Unknown database error'}"
    if exc.hint:
        message += f" ({exc.hint})"
    return message


class UploadLedger:
    """Insertion-ordered, keyed record of one persona's uploads."""

    def __init__(self) -> None:
        self._items: OrderedDict[str, UploadedFile] = OrderedDict()

    def add(self, item: UploadedFile) -> None:
        self._items[item.id] = replace(item)

    def update(self, item: UploadedFile) -> None:
        if item.id in self._items:
            self._items[item.id] = replace(item)

    def remove(self, file_id: str) -> bool:
        return self._items.pop(file_id, None) is not None

    def get(self, file_id: str) -> UploadedFile | None:
        item = self._items.get(file_id)
        return replace(item) if item else None

    def items(self) -> list[UploadedFile]:
        return [replace(item) for item in self._items.values()]

    def __len__(self) -> int:
        return len(self._items)


class UploadCoordinator:
    """Own one persona's upload batches.

    Storage probes, object-store writes and table writes run in worker
    threads; the SQLite store serialises them under its lock. Nothing is retried: every failure is terminal for
    the file it happened to and is reported on that file.
    """

    def __init__(
        self,
        persona_id: str | None,
        object_store: ObjectStore,
        database: SQLiteDatabase,
        settings: Settings,
        processor: ContentProcessor | None = None,
    ) -> None:
        self.persona_id = persona_id
        self.object_store = object_store
        self.db = database
        self.settings = settings
        self.bucket = settings.storage_bucket
        self.processor = processor or ContentProcessor(database)
        self.ledger = UploadLedger()
        self._probe: StorageProbe | None = None
        self._active_batches = 0
        self._closed = False

    # State ------------------------------------------------------------

    @property
    def persona_valid(self) -> bool:
        return is_valid_uuid(self.persona_id)

    @property
    def accepting(self) -> bool:
        """False when drops must be ignored: no valid persona or storage unusable."""
        if not self.persona_valid or self._closed:
            return False
        return self._probe is None or self._probe.ok

    @property
    def is_uploading(self) -> bool:
        """True until every file of every overlapping batch has settled."""
        return self._active_batches > 0

    @property
    def storage_probe(self) -> StorageProbe | None:
        return self._probe

    def files(self) -> list[UploadedFile]:
        return self.ledger.items()

    def remove(self, file_id: str) -> bool:
        """Drop a file from the local list; stored objects and records are kept."""
        return self.ledger.remove(file_id)

    def close(self) -> None:
        """Stop applying state updates from in-flight uploads."""
        self._closed = True

    # Storage probe -----------------------------------------------------

    def probe_storage(self, force: bool = False) -> StorageProbe:
        """Write then delete a small object to verify the bucket is writable.

        The result is cached for the coordinator's lifetime; ``force`` re-runs it.
        """
        if self._probe is not None and not force:
            return self._probe
        probe_path = f"probe-{now_ms()}.txt"
        try:
            self.object_store.put(self.bucket, probe_path, PROBE_PAYLOAD, overwrite=True)
        except StorageError as exc:
            probe = StorageProbe(ok=False, kind=exc.kind, message=self._remediation(exc), checked_at=now_ms())
            logger.error(
                "Storage probe failed (%s): %s",
                exc.kind.value,
                exc.message,
                extra={"ctx_bucket": self.bucket},
            )
        else:
            try:
                self.object_store.delete(self.bucket, probe_path)
            except StorageError as exc:
                logger.warning("Could not remove probe object %s: %s", probe_path, exc.message)
            probe = StorageProbe(ok=True, checked_at=now_ms())
        self._probe = probe
        return probe

    def _remediation(self, exc: StorageError) -> str:
        template = _STORAGE_REMEDIATION[exc.kind]
        return template.format(
            bucket=self.bucket,
            limit=self.settings.max_upload_bytes // (1024 * 1024),
            message=exc.message,
        )

    # Batches -------------------------------------------------------------

    async def upload_batch(self, files: Sequence[IncomingFile]) -> BatchResult:
        """Upload a dropped batch; per-file outcomes never affect siblings."""
        result = BatchResult()
        if not self.persona_valid:
            result.rejected = True
            result.notices.append(Notice("error", "Please select a persona before uploading files"))
            return result
        if self._closed:
            result.rejected = True
            result.notices.append(Notice("error", "Uploads are closed for this persona"))
            return result

        self._active_batches += 1
        try:
            # Oversized files are dropped before any store call, including the probe.
            limit = self.settings.max_upload_bytes
            valid: list[IncomingFile] = []
            for incoming in files:
                if incoming.size > limit:
                    logger.warning(
                        "File %s is too large (%s). Maximum size is %sMB.",
                        incoming.name,
                        format_file_size(incoming.size),
                        limit // (1024 * 1024),
                    )
                    result.notices.append(
                        Notice("warning", f"File {incoming.name} is too large. Maximum size is {limit // (1024 * 1024)}MB.")
                    )
                    UPLOAD_COUNT.labels("rejected").inc()
                    continue
                valid.append(incoming)
            if not valid:
                return result

            if self._probe is None:
                await asyncio.to_thread(self.probe_storage)
            if not self.accepting:
                result.rejected = True
                result.notices.append(Notice("error", self._probe.message if self._probe else "Uploads disabled"))
                return result

            batch_ms = now_ms()
            entries = [
                UploadedFile(
                    id=new_id("upl"),
                    name=incoming.name,
                    size=incoming.size,
                    mime_type=incoming.mime_type,
                    path=storage_path(incoming.name, batch_ms),
                )
                for incoming in valid
            ]
            for entry in entries:
                self.ledger.add(entry)

            outcomes = await asyncio.gather(
                *(self._upload_one(incoming, entry, result.notices) for incoming, entry in zip(valid, entries)),
                return_exceptions=True,
            )
            for entry, outcome in zip(entries, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Unexpected upload failure for %s", entry.name, exc_info=outcome)
                    entry.status = "error"
                    entry.progress = 0
                    entry.error = str(outcome) or "Upload failed"
                    self._apply(entry)
                    result.files.append(entry)
                else:
                    result.files.append(outcome)
            return result
        finally:
            self._active_batches -= 1

    async def _upload_one(self, incoming: IncomingFile, uploaded: UploadedFile, notices: list[Notice]) -> UploadedFile:
        try:
            if incoming.size > self.settings.max_upload_bytes:
                raise FileTooLargeError(incoming.name, incoming.size, self.settings.max_upload_bytes)
            if not self.persona_valid:
                raise InvalidPersonaIdError(self.persona_id)
            if self._probe is None or not self._probe.ok:
                raise UploadFailed("Storage bucket not available")

            uploaded.content_type = content_category(incoming.mime_type)
            logger.info("Uploading %s to %s", incoming.name, uploaded.path, extra={"ctx_persona_id": self.persona_id})
            try:
                url = await asyncio.to_thread(
                    self.object_store.put, self.bucket, uploaded.path, incoming.data, True
                )
            except StorageError as exc:
                raise UploadFailed(f"Upload failed: {exc.message}") from exc
            UPLOAD_BYTES.inc(incoming.size)

            uploaded.url = url
            uploaded.status = "processing"
            uploaded.progress = 50
            self._apply(uploaded)

            try:
                record = await asyncio.to_thread(self._insert_record, incoming, uploaded)
                uploaded.record_id = record["id"]
                await asyncio.to_thread(
                    self.processor.process,
                    record["id"],
                    incoming.name,
                    incoming.mime_type,
                    uploaded.content_type,
                    incoming.data,
                )
            except PersistenceError as exc:
                logger.error(
                    "Database error (%s) saving %s: %s",
                    exc.kind.value,
                    incoming.name,
                    exc.message,
                    extra={"ctx_persona_id": self.persona_id},
                )
                raise UploadFailed(describe_persistence_error(exc)) from exc

            # Cosmetic settle delay; the record is already durable.
            await asyncio.sleep(self.settings.upload_settle_seconds)
            uploaded.status = "completed"
            uploaded.progress = 100
            self._apply(uploaded)
            UPLOAD_COUNT.labels("completed").inc()
            notices.append(Notice("success", f'File "{incoming.name}" uploaded successfully!'))
            logger.info("Upload completed for %s", incoming.name, extra={"ctx_persona_id": self.persona_id})
        except PersonaStudioError as exc:
            uploaded.status = "error"
            uploaded.progress = 0
            uploaded.error = str(exc) or "Upload failed"
            self._apply(uploaded)
            UPLOAD_COUNT.labels("error").inc()
            notices.append(Notice("error", f'Failed to upload "{incoming.name}": {uploaded.error}'))
            logger.warning("Upload failed for %s: %s", incoming.name, uploaded.error)
        return uploaded

    def _insert_record(self, incoming: IncomingFile, uploaded: UploadedFile) -> dict[str, object]:
        now = utc_now_iso()
        return self.db.insert(
            "persona_content",
            {
                "id": new_uuid(),
                "persona_id": self.persona_id,
                "content_type": uploaded.content_type,
                "file_url": uploaded.url,
                "file_name": incoming.name,
                "file_size": incoming.size,
                "metadata": {
                    "original_name": incoming.name,
                    "mime_type": incoming.mime_type,
                    "upload_date": now,
                    "storage_path": uploaded.path,
                    "sha256": hashlib.sha256(incoming.data).hexdigest(),
                },
                "processing_status": "processing",
                "created_at": now,
                "updated_at": now,
            },
        )

    def _apply(self, uploaded: UploadedFile) -> None:
        if not self._closed:
            self.ledger.update(uploaded)


__all__ = [
    "UploadCoordinator",
    "UploadLedger",
    "UploadFailed",
    "content_category",
    "storage_path",
    "describe_persistence_error",
]
