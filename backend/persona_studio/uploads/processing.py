"""Server-side processing that makes stored content visible to training."""

from __future__ import annotations

from persona_studio.core.errors import NotFoundError
from persona_studio.core.logging import get_logger
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.uploads.loaders import LoaderRegistry
from persona_studio.utils.time import utc_now_iso

logger = get_logger(__name__)


class ContentProcessor:
    """Extract text from documents and flip ``processing_status`` to completed.

    Extraction failures mark the record ``error`` (it then never reaches
    training) but are not raised: the upload itself already succeeded.
    Store failures while recording the outcome are raised.
    """

    def __init__(self, database: SQLiteDatabase, loader_registry: LoaderRegistry | None = None) -> None:
        self.db = database
        self.loader_registry = loader_registry or LoaderRegistry()

    def process(self, record_id: str, filename: str, mime_type: str, category: str, data: bytes) -> str:
        """Process one record; returns the resulting processing status."""
        record = self.db.get("persona_content", record_id)
        if record is None:
            raise NotFoundError(f"Content record not found: {record_id}")
        metadata = dict(record.get("metadata") or {})
        patch: dict[str, object] = {"updated_at": utc_now_iso()}

        if category == "text":
            try:
                extracted = self.loader_registry.load(filename, mime_type, data)
            except Exception as exc:
                logger.warning(
                    "Text extraction failed for %s: %s",
                    filename,
                    exc,
                    extra={"ctx_record_id": record_id},
                )
                metadata["processing_error"] = str(exc)
                patch.update({"processing_status": "error", "metadata": metadata})
                self.db.update("persona_content", {"id": record_id}, patch)
                return "error"
            metadata.update({key: value for key, value in extracted.metadata.items() if value is not None})
            metadata["char_count"] = len(extracted.text)
            patch["content_text"] = extracted.text

        patch.update({"processing_status": "completed", "metadata": metadata})
        self.db.update("persona_content", {"id": record_id}, patch)
        logger.info("Processed %s as %s", filename, category, extra={"ctx_record_id": record_id})
        return "completed"


__all__ = ["ContentProcessor"]
