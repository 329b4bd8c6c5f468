"""Tests for small helpers."""

import logging

import orjson

from persona_studio.core.logging import ContextTextFormatter, JsonFormatter
from persona_studio.llm.json_utils import clean_json_response, parse_json_reply
from persona_studio.models.entities import PersonaProfile
from persona_studio.utils.ids import is_valid_uuid, new_uuid
from persona_studio.utils.text import format_file_size, sanitize_filename
from persona_studio.utils.time import elapsed_seconds, parse_iso


def test_uuid_validation() -> None:
    assert is_valid_uuid(new_uuid())
    assert is_valid_uuid("3F2504E0-4F89-11D3-9A0C-0305E82C3301")
    assert not is_valid_uuid("3f2504e0-4f89-61d3-9a0c-0305e82c3301")
    assert not is_valid_uuid("")
    assert not is_valid_uuid(None)


def test_sanitize_and_format() -> None:
    assert sanitize_filename("Été 2020/photo.JPG") == "_t__2020_photo.JPG"
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(60 * 1024 * 1024) == "60 MB"
    assert format_file_size(1536) == "1.5 KB"


def test_json_reply_cleanup() -> None:
    assert clean_json_response('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert parse_json_reply("```\n[1, 2]\n```") == [1, 2]
    assert parse_json_reply("  ") == {}


def test_profile_coerces_reply_shapes() -> None:
    profile = PersonaProfile.from_dict(
        {
            "personality": ["kind", "funny"],
            "speechPatterns": "drawls",
            "commonPhrases": {"greeting": "howdy"},
            "voiceCharacteristics": {"pitch": "0.5", "speed": "fast"},
        }
    )
    assert profile.personality == "kind, funny"
    assert profile.speech_patterns == ["drawls"]
    assert profile.common_phrases == ["greeting: howdy"]
    assert profile.memories == []
    assert profile.voice_characteristics.pitch == 0.5
    assert profile.voice_characteristics.speed is None


def test_elapsed_seconds() -> None:
    end = parse_iso("2024-05-01T10:01:30+00:00")
    assert elapsed_seconds("2024-05-01T10:00:00", end) == 90
    assert elapsed_seconds("2024-05-01T10:05:00+00:00", end) == 0
    assert elapsed_seconds(None, end) == 0


def test_log_context_fields() -> None:
    record = logging.LogRecord("persona_studio.test", logging.INFO, __file__, 1, "Upload %s", ("a.txt",), None)
    record.ctx_persona_id = "p-1"
    payload = orjson.loads(JsonFormatter().format(record))
    assert payload["message"] == "Upload a.txt"
    assert payload["persona_id"] == "p-1"
    assert payload["timestamp"].endswith("+00:00")
    assert ContextTextFormatter().format(record).endswith("Upload a.txt persona_id=p-1")
