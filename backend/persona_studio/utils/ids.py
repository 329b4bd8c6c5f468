"""ID helpers."""

from __future__ import annotations

import re
import uuid

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def new_id(prefix: str | None = None) -> str:
    """Generate a random UUID4 string with optional prefix."""
    base = uuid.uuid4().hex
    return f"{prefix}_{base}" if prefix else base


def new_uuid() -> str:
    """Canonical hyphenated UUID4, used for rows that cross the store boundary."""
    return str(uuid.uuid4())


def is_valid_uuid(value: str | None) -> bool:
    """True for canonical RFC 4122 version 1-5 identifiers."""
    return bool(value) and _UUID_RE.match(value) is not None
