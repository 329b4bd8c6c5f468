"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Mapping

ContentCategory = Literal["text", "audio", "video", "image"]
PersonaStatus = Literal["draft", "training", "active", "error"]


@dataclass(slots=True)
class Persona:
    id: str
    name: str
    description: str | None
    status: str
    training_progress: int
    personality_traits: str | None
    speech_patterns: list[str]
    common_phrases: list[str]
    emotional_tone: str | None
    memories: list[str]
    metadata: dict[str, Any]
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Persona":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row.get("description"),
            status=row["status"],
            training_progress=int(row.get("training_progress") or 0),
            personality_traits=row.get("personality_traits"),
            speech_patterns=list(row.get("speech_patterns") or []),
            common_phrases=list(row.get("common_phrases") or []),
            emotional_tone=row.get("emotional_tone"),
            memories=list(row.get("memories") or []),
            metadata=dict(row.get("metadata") or {}),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(slots=True)
class ContentRecord:
    id: str
    persona_id: str
    content_type: str
    file_url: str | None
    file_name: str | None
    file_size: int | None
    content_text: str | None
    metadata: dict[str, Any]
    processing_status: str
    created_at: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ContentRecord":
        return cls(
            id=row["id"],
            persona_id=row["persona_id"],
            content_type=row["content_type"],
            file_url=row.get("file_url"),
            file_name=row.get("file_name"),
            file_size=row.get("file_size"),
            content_text=row.get("content_text"),
            metadata=dict(row.get("metadata") or {}),
            processing_status=row["processing_status"],
            created_at=row["created_at"],
        )


@dataclass(slots=True)
class VoiceCharacteristics:
    pitch: float | None = None
    speed: float | None = None
    tone: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "VoiceCharacteristics | None":
        if not isinstance(raw, Mapping):
            return None
        return cls(pitch=_as_float(raw.get("pitch")), speed=_as_float(raw.get("speed")), tone=_as_text(raw.get("tone")))


@dataclass(slots=True)
class PersonaProfile:
    """Unified persona description returned by profile synthesis.

    Model replies use camelCase keys; ``from_dict`` accepts those and
    coerces scalars into lists where a list is expected.
    """

    personality: str
    speech_patterns: list[str] = field(default_factory=list)
    common_phrases: list[str] = field(default_factory=list)
    emotional_tone: str = ""
    memories: list[str] = field(default_factory=list)
    voice_characteristics: VoiceCharacteristics | None = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "PersonaProfile":
        return cls(
            personality=_as_text(raw.get("personality")) or "",
            speech_patterns=_as_list(raw.get("speechPatterns")),
            common_phrases=_as_list(raw.get("commonPhrases")),
            emotional_tone=_as_text(raw.get("emotionalTone")) or "",
            memories=_as_list(raw.get("memories")),
            voice_characteristics=VoiceCharacteristics.from_dict(raw.get("voiceCharacteristics")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "personality": self.personality,
            "speechPatterns": list(self.speech_patterns),
            "commonPhrases": list(self.common_phrases),
            "emotionalTone": self.emotional_tone,
            "memories": list(self.memories),
            "voiceCharacteristics": asdict(self.voice_characteristics) if self.voice_characteristics else None,
        }


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return str(value)


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, Mapping):
        return [f"{key}: {item}" for key, item in value.items()]
    return [str(item) for item in value]


def _as_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
