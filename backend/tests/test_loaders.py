"""Tests for document text extraction and content processing."""

from __future__ import annotations

import io

import fitz
import pytest
from docx import Document

from persona_studio.uploads.loaders import LoaderRegistry, MarkdownLoader, TextLoader, decode_text
from persona_studio.uploads.processing import ContentProcessor
from persona_studio.utils.ids import new_uuid
from persona_studio.utils.time import utc_now_iso


def test_markdown_front_matter_and_body() -> None:
    data = b"---\ntitle: Diary\n---\n# Monday\n\nWent to the *market* today."
    extracted = LoaderRegistry().load("diary.md", "text/plain", data)
    assert extracted.metadata["front_matter"] == {"title": "Diary"}
    assert "Monday" in extracted.text
    assert "market" in extracted.text
    assert "---" not in extracted.text


def test_markdown_drops_markup_and_code() -> None:
    data = b"Went to the *market* with `Joe`.\n\n```\nprint('x')\n```\n"
    extracted = MarkdownLoader().load(data)
    assert extracted.text == "Went to the market with Joe."


def test_decode_falls_back_to_latin1() -> None:
    assert decode_text("café".encode("latin-1")) == "café"
    assert decode_text(b"\xef\xbb\xbfhello") == "hello"


def test_registry_prefers_suffix_then_mime() -> None:
    registry = LoaderRegistry()
    assert isinstance(registry.for_file("notes.md", "text/plain"), MarkdownLoader)
    assert isinstance(registry.for_file("letter", "text/plain"), TextLoader)
    assert isinstance(registry.for_file("page.html", "text/html"), TextLoader)
    assert registry.for_file("blob.bin", "application/octet-stream") is None


def test_pdf_text_extraction() -> None:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Letters from the farm")
    data = doc.tobytes()
    doc.close()
    extracted = LoaderRegistry().load("letters.pdf", "application/pdf", data)
    assert "Letters from the farm" in extracted.text
    assert extracted.metadata["page_count"] == 1


def test_docx_text_extraction() -> None:
    document = Document()
    document.add_paragraph("Recipe for apple pie")
    document.core_properties.author = "Rose"
    buffer = io.BytesIO()
    document.save(buffer)
    extracted = LoaderRegistry().load(
        "recipe.docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        buffer.getvalue(),
    )
    assert extracted.text == "Recipe for apple pie"
    assert extracted.metadata["author"] == "Rose"


def test_unknown_binary_raises() -> None:
    with pytest.raises(ValueError):
        LoaderRegistry().load("blob.bin", "application/octet-stream", b"\x00\x01")


def _record(db, persona_id: str, content_type: str, file_name: str) -> str:
    now = utc_now_iso()
    row = db.insert(
        "persona_content",
        {
            "id": new_uuid(),
            "persona_id": persona_id,
            "content_type": content_type,
            "file_name": file_name,
            "metadata": {"original_name": file_name},
            "processing_status": "processing",
            "created_at": now,
            "updated_at": now,
        },
    )
    return row["id"]


def test_processor_extracts_text(db, persona, sample_text) -> None:
    record_id = _record(db, persona.id, "text", "notes.txt")
    status = ContentProcessor(db).process(record_id, "notes.txt", "text/plain", "text", sample_text.encode())
    row = db.get("persona_content", record_id)
    assert status == "completed"
    assert row["processing_status"] == "completed"
    assert "lovely day" in row["content_text"]
    assert row["metadata"]["original_name"] == "notes.txt"
    assert row["metadata"]["char_count"] == len(row["content_text"])


def test_processor_marks_unreadable_text_as_error(db, persona) -> None:
    record_id = _record(db, persona.id, "text", "archive.zip")
    status = ContentProcessor(db).process(record_id, "archive.zip", "application/zip", "text", b"PK\x03\x04")
    row = db.get("persona_content", record_id)
    assert status == "error"
    assert row["processing_status"] == "error"
    assert "No text extractor" in row["metadata"]["processing_error"]


def test_processor_completes_media_without_extraction(db, persona) -> None:
    record_id = _record(db, persona.id, "audio", "voice.mp3")
    status = ContentProcessor(db).process(record_id, "voice.mp3", "audio/mpeg", "audio", b"ID3")
    assert status == "completed"
    assert db.get("persona_content", record_id)["content_text"] is None
