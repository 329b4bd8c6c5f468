"""JSON utilities for cleaning LLM responses."""

from __future__ import annotations

from typing import Any

import orjson


def clean_json_response(response: str) -> str:
    """Strip Markdown code fences that models wrap around JSON replies."""
    response = response.strip()

    if response.startswith("```json"):
        response = response[7:]
    elif response.startswith("```"):
        response = response[3:]

    if response.endswith("```"):
        response = response[:-3]

    return response.strip()


def parse_json_reply(response: str) -> Any:
    """Parse a model reply as JSON; raises ``orjson.JSONDecodeError`` when malformed."""
    return orjson.loads(clean_json_response(response) or "{}")


__all__ = ["clean_json_response", "parse_json_reply"]
