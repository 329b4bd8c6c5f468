"""Text processing helpers."""

from __future__ import annotations

import re


WHITESPACE_RE = re.compile(r"\s+")
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def sanitize_filename(name: str) -> str:
    """Replace anything outside ``[a-zA-Z0-9.-]`` with an underscore."""
    return _UNSAFE_FILENAME_RE.sub("_", name)


def format_file_size(size: int) -> str:
    """Human readable size, e.g. ``60 MB``."""
    if size <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    return f"{round(value, 2):g} {units[idx]}"
