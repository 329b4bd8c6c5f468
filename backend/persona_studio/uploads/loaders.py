"""Text extractors for uploaded documents."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any

import fitz
import langid
import yaml
from docx import Document
from markdown_it import MarkdownIt

from persona_studio.utils.text import normalize

_MD = MarkdownIt()
_FRONT_MATTER = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)


@dataclass(slots=True)
class ExtractedText:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseLoader:
    """A loader claims files by suffix or declared MIME type."""

    suffixes: tuple[str, ...] = ()
    mime_types: tuple[str, ...] = ()

    def can_load(self, filename: str, mime_type: str) -> bool:
        return mime_type in self.mime_types or PurePath(filename).suffix.lower() in self.suffixes

    def load(self, data: bytes) -> ExtractedText:  # pragma: no cover - interface
        raise NotImplementedError


class MarkdownLoader(BaseLoader):
    """Diaries and notes written in Markdown; code blocks are left out."""

    suffixes = (".md", ".markdown", ".mdx")
    mime_types = ("text/markdown", "text/x-markdown")

    def load(self, data: bytes) -> ExtractedText:
        source = decode_text(data)
        front_matter: dict[str, Any] | None = None
        match = _FRONT_MATTER.match(source)
        if match:
            try:
                parsed = yaml.safe_load(match.group(1))
            except yaml.YAMLError:
                parsed = None
            if isinstance(parsed, dict):
                front_matter = parsed
                source = source[match.end() :]
        text = markdown_plain_text(source)
        metadata: dict[str, Any] = {"lang": detect_language(text)}
        if front_matter:
            metadata["front_matter"] = front_matter
        return ExtractedText(text=text, metadata=metadata)


class TextLoader(BaseLoader):
    suffixes = (".txt", ".text", ".log", ".csv")
    mime_types = ("text/plain", "text/csv")

    def load(self, data: bytes) -> ExtractedText:
        text = normalize(decode_text(data))
        return ExtractedText(text=text, metadata={"lang": detect_language(text)})


class PDFLoader(BaseLoader):
    suffixes = (".pdf",)
    mime_types = ("application/pdf",)

    def load(self, data: bytes) -> ExtractedText:
        with fitz.open(stream=data, filetype="pdf") as doc:
            page_texts = [page.get_text("text", sort=True) for page in doc]
            info = doc.metadata or {}
        text = normalize("\n\n".join(page_texts))
        return ExtractedText(
            text=text,
            metadata={
                "page_count": len(page_texts),
                "lang": detect_language(text),
                "title": info.get("title") or None,
                "author": info.get("author") or None,
            },
        )


class DocxLoader(BaseLoader):
    suffixes = (".docx",)
    mime_types = ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",)

    def load(self, data: bytes) -> ExtractedText:
        document = Document(io.BytesIO(data))
        lines = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    lines.append(" | ".join(cells))
        text = normalize("\n".join(lines))
        props = document.core_properties
        return ExtractedText(
            text=text,
            metadata={
                "lang": detect_language(text),
                "title": props.title or None,
                "author": props.author or None,
            },
        )


class LoaderRegistry:
    """Pick the extractor for an upload: suffix match first, then MIME type."""

    def __init__(self) -> None:
        # Markdown before plain text: browsers often label .md as text/plain
        self._loaders: list[BaseLoader] = [MarkdownLoader(), PDFLoader(), DocxLoader(), TextLoader()]
        self._fallback: BaseLoader = self._loaders[-1]

    def register(self, loader: BaseLoader) -> None:
        self._loaders.insert(0, loader)

    def for_file(self, filename: str, mime_type: str) -> BaseLoader | None:
        suffix = PurePath(filename).suffix.lower()
        if suffix:
            by_suffix = next((loader for loader in self._loaders if suffix in loader.suffixes), None)
            if by_suffix is not None:
                return by_suffix
        by_mime = next((loader for loader in self._loaders if loader.can_load(filename, mime_type)), None)
        if by_mime is None and mime_type.startswith("text/"):
            return self._fallback
        return by_mime

    def load(self, filename: str, mime_type: str, data: bytes) -> ExtractedText:
        loader = self.for_file(filename, mime_type)
        if loader is None:
            raise ValueError(f"No text extractor for {filename} ({mime_type})")
        return loader.load(data)


def decode_text(data: bytes) -> str:
    """UTF-8 (with or without BOM), falling back to Latin-1 for older exports."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def markdown_plain_text(source: str) -> str:
    """Render Markdown to plain text: one line per block, emphasis markers dropped."""
    blocks: list[str] = []
    for token in _MD.parse(source):
        if token.type != "inline" or not token.children:
            continue
        pieces: list[str] = []
        for child in token.children:
            if child.type in ("text", "code_inline"):
                pieces.append(child.content)
            elif child.type in ("softbreak", "hardbreak"):
                pieces.append("\n")
        block = "".join(pieces).strip()
        if block:
            blocks.append(block)
    return normalize("\n".join(blocks))


def detect_language(text: str) -> str:
    if not text:
        return "und"
    lang, _ = langid.classify(text)
    return lang


__all__ = ["LoaderRegistry", "ExtractedText", "BaseLoader", "decode_text", "markdown_plain_text"]
