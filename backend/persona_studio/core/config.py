"""Persona Studio settings: defaults, then a YAML file, then PSTU_* variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from persona_studio.core.logging import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "PSTU_"
DEFAULT_CONFIG_PATH = Path("~/.config/persona-studio/config.yaml")

# YAML section -> {key in section: Settings field}
_SECTIONS: dict[str, dict[str, str]] = {
    "storage": {
        "db_path": "db_path",
        "root": "storage_root",
        "bucket": "storage_bucket",
        "public_base_url": "public_base_url",
    },
    "uploads": {"max_bytes": "max_upload_bytes", "settle_seconds": "upload_settle_seconds"},
    "openai": {"api_key": "openai_api_key", "base_url": "openai_base_url", "timeout": "llm_timeout"},
    "models": {
        "completion": "completion_model",
        "vision": "vision_model",
        "transcription": "transcription_model",
    },
    "training": {"max_audio_files": "max_audio_files", "max_image_files": "max_image_files"},
    "conversation": {
        "reply_timeout_seconds": "reply_timeout_seconds",
        "history_turns": "conversation_history_turns",
    },
}

# Unprefixed variables honoured when no PSTU_* or YAML value is given.
_PROVIDER_ENV = {"openai_api_key": "OPENAI_API_KEY", "openai_base_url": "OPENAI_BASE_URL"}


class Settings(BaseModel):
    """Everything the API, the coordinators and the CLI read at runtime."""

    db_path: Path = Field(default=Path.home() / ".persona-studio" / "studio.db")
    storage_root: Path = Field(default=Path.home() / ".persona-studio" / "objects")
    storage_bucket: str = "persona-content"
    public_base_url: str = "http://127.0.0.1:5180"
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    # Cosmetic delay before a stored upload is shown as completed.
    upload_settle_seconds: float = Field(default=2.0, ge=0)
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    llm_timeout: float = 120.0
    completion_model: str = "gpt-4"
    vision_model: str = "gpt-4o"
    transcription_model: str = "whisper-1"
    max_audio_files: int = Field(default=5, ge=0)
    max_image_files: int = Field(default=10, ge=0)
    reply_timeout_seconds: float = Field(default=60.0, gt=0)
    conversation_history_turns: int = Field(default=12, ge=1)

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", "storage_root", mode="before")
    @classmethod
    def _as_user_path(cls, value: Any) -> Path:
        if isinstance(value, (str, Path)):
            return Path(value).expanduser()
        raise TypeError("paths must be a path or string")

    @field_validator("public_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Build settings from ``path`` (or the discovered file) with env on top."""
        values: dict[str, Any] = {}
        config_path = locate_config(path)
        if config_path is not None:
            values.update(read_config_file(config_path))
        values.update(env_overrides())
        for field_name, variable in _PROVIDER_ENV.items():
            if field_name not in values and os.environ.get(variable):
                values[field_name] = os.environ[variable]
        return cls(**values)


def locate_config(path: Path | None = None) -> Path | None:
    """Explicit path, then ``PSTU_CONFIG``, then the per-user default if present."""
    if path is not None:
        return path.expanduser()
    from_env = os.environ.get(f"{ENV_PREFIX}CONFIG")
    if from_env:
        return Path(from_env).expanduser()
    default = DEFAULT_CONFIG_PATH.expanduser()
    return default if default.is_file() else None


def read_config_file(path: Path) -> dict[str, Any]:
    """Translate the sectioned YAML layout into Settings field names.

    Top-level keys that already are field names pass through unchanged;
    anything else is logged and ignored.
    """
    if not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        section = _SECTIONS.get(key)
        if section is not None and isinstance(value, Mapping):
            for sub_key, sub_value in value.items():
                if sub_key in section:
                    values[section[sub_key]] = sub_value
                else:
                    logger.warning("Ignoring unknown config key %s.%s in %s", key, sub_key, path)
        elif key in Settings.model_fields:
            values[key] = value
        else:
            logger.warning("Ignoring unknown config key %s in %s", key, path)
    return values


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """``PSTU_<FIELD>`` variables keyed by field name; pydantic coerces the strings."""
    environ = os.environ if environ is None else environ
    return {
        name: environ[f"{ENV_PREFIX}{name.upper()}"]
        for name in Settings.model_fields
        if f"{ENV_PREFIX}{name.upper()}" in environ
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings; ``cache_clear`` forces a reload."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings", "locate_config", "read_config_file", "env_overrides"]
