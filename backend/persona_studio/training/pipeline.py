"""Persona training pipeline.

Six sequential stages, each gated on the previous one:

1. gather completed content records, bucketed by category
2. text analysis (completion API, JSON reply)
3. audio transcription and speech-pattern analysis (first N files)
4. image description via a vision model (first N images)
5. unified profile synthesis, persisted on the persona
6. system prompt derivation, persisted into persona metadata

Per-item failures in stages 3 and 4 are logged and skipped. A malformed
reply in stages 2 and 3 becomes an error marker. Anything else aborts the
run with ``PipelineError``.
"""

from __future__ import annotations

import base64
from dataclasses import asdict
from typing import Any

import orjson

from persona_studio.core.config import Settings
from persona_studio.core.errors import PersonaStudioError, PipelineError
from persona_studio.core.logging import get_logger
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.llm.client import LLMClient
from persona_studio.llm.json_utils import parse_json_reply
from persona_studio.models.entities import ContentRecord, PersonaProfile
from persona_studio.storage.object_store import ObjectStore
from persona_studio.training.prompts import (
    IMAGE_ANALYSIS_PROMPT,
    PROFILE_SYNTHESIS_PROMPT,
    SPEECH_ANALYSIS_PROMPT,
    TEXT_ANALYSIS_PROMPT,
    build_system_prompt,
)
from persona_studio.training.types import (
    CONTENT_ANALYSIS,
    CONVERSATION_TRAINING,
    FINAL_OPTIMIZATION,
    PERSONALITY_EXTRACTION,
    VOICE_MODELING,
    ProgressCallback,
    TrainingData,
)
from persona_studio.utils.time import utc_now_iso

logger = get_logger(__name__)


class TrainingPipeline:
    """Turn a persona's completed content records into a persona profile."""

    def __init__(
        self,
        persona_id: str,
        database: SQLiteDatabase,
        object_store: ObjectStore,
        llm: LLMClient,
        settings: Settings,
        on_progress: ProgressCallback,
    ) -> None:
        self.persona_id = persona_id
        self.db = database
        self.object_store = object_store
        self.llm = llm
        self.settings = settings
        self.on_progress = on_progress

    def run(self) -> PersonaProfile:
        try:
            self.on_progress(CONTENT_ANALYSIS, 10)
            data = self.gather_training_data()
            self.on_progress(CONTENT_ANALYSIS, 50)
            text_analysis = self.analyze_text(data.text)
            self.on_progress(CONTENT_ANALYSIS, 100)

            self.on_progress(VOICE_MODELING, 10)
            voice_analysis = self.analyze_audio(data.audio)
            self.on_progress(VOICE_MODELING, 100)

            self.on_progress(PERSONALITY_EXTRACTION, 10)
            visual_analysis = self.analyze_visual(data.images, data.video)
            self.on_progress(PERSONALITY_EXTRACTION, 100)

            self.on_progress(CONVERSATION_TRAINING, 10)
            profile = self.create_profile(text_analysis, voice_analysis, visual_analysis)
            self.on_progress(CONVERSATION_TRAINING, 100)

            self.on_progress(FINAL_OPTIMIZATION, 10)
            self.optimize_conversation_model(profile)
            self.on_progress(FINAL_OPTIMIZATION, 100)
            return profile
        except Exception as exc:
            logger.exception("Training pipeline error", extra={"ctx_persona_id": self.persona_id})
            detail = str(exc) if isinstance(exc, PersonaStudioError) else exc.__class__.__name__
            raise PipelineError(f"Failed to train AI persona: {detail}") from exc

    # Stage 1 -------------------------------------------------------------

    def gather_training_data(self) -> TrainingData:
        rows = self.db.select(
            "persona_content",
            {"persona_id": self.persona_id, "processing_status": "completed"},
            order_by="created_at",
        )
        data = TrainingData()
        for record in (ContentRecord.from_row(row) for row in rows):
            if record.content_type == "text":
                if record.content_text:
                    data.text.append(record.content_text)
            elif not record.file_url:
                continue
            elif record.content_type == "audio":
                data.audio.append(record)
            elif record.content_type == "video":
                data.video.append(record)
            elif record.content_type == "image":
                data.images.append(record)
        logger.info(
            "Gathered training data: %s text, %s audio, %s video, %s image",
            len(data.text),
            len(data.audio),
            len(data.video),
            len(data.images),
            extra={"ctx_persona_id": self.persona_id},
        )
        return data

    # Stage 2 -------------------------------------------------------------

    def analyze_text(self, texts: list[str]) -> dict[str, Any] | None:
        if not texts:
            return None
        reply = self.llm.complete(
            self.settings.completion_model,
            [
                {"role": "system", "content": TEXT_ANALYSIS_PROMPT},
                {"role": "user", "content": "\n\n".join(texts)},
            ],
            max_tokens=1500,
            temperature=0.3,
        )
        return _parse_or_marker(reply, "Failed to parse text analysis")

    # Stage 3 -------------------------------------------------------------

    def analyze_audio(self, records: list[ContentRecord]) -> dict[str, Any] | None:
        if not records:
            return None
        selected = records[: self.settings.max_audio_files]
        transcriptions: list[str] = []
        for idx, record in enumerate(selected, start=1):
            try:
                audio = self.object_store.read(record.file_url or "")
                transcriptions.append(self.llm.transcribe(audio, record.file_name or "audio.mp3"))
            except Exception as exc:
                logger.warning("Audio transcription error for %s: %s", record.file_name, exc)
            self.on_progress(VOICE_MODELING, 10 + (60 * idx) // len(selected))

        transcriptions = [text for text in transcriptions if text and text.strip()]
        if not transcriptions:
            return None

        reply = self.llm.complete(
            self.settings.completion_model,
            [
                {"role": "system", "content": SPEECH_ANALYSIS_PROMPT},
                {"role": "user", "content": "\n\n".join(transcriptions)},
            ],
            max_tokens=1000,
            temperature=0.3,
        )
        return _parse_or_marker(reply, "Failed to parse audio analysis")

    # Stage 4 -------------------------------------------------------------

    def analyze_visual(self, images: list[ContentRecord], videos: list[ContentRecord]) -> dict[str, list[str]]:
        visual: dict[str, list[str]] = {
            "expressions": [],
            "settings": [],
            "activities": [],
            "relationships": [],
        }
        if videos:
            # TODO: analyze sampled video frames once frame extraction exists
            logger.warning("Skipping %s video records; video analysis is not implemented", len(videos))

        selected = images[: self.settings.max_image_files]
        for idx, record in enumerate(selected, start=1):
            try:
                data_url = self._image_data_url(record)
                description = self.llm.complete(
                    self.settings.vision_model,
                    [
                        {
                            "role": "user",
                            "content": [
                                {"type": "text", "text": IMAGE_ANALYSIS_PROMPT},
                                {"type": "image_url", "image_url": {"url": data_url}},
                            ],
                        }
                    ],
                    max_tokens=300,
                )
                if description:
                    visual["expressions"].append(description)
            except Exception as exc:
                logger.warning("Image analysis error for %s: %s", record.file_name, exc)
            self.on_progress(PERSONALITY_EXTRACTION, 10 + (80 * idx) // len(selected))
        return visual

    def _image_data_url(self, record: ContentRecord) -> str:
        raw = self.object_store.read(record.file_url or "")
        mime_type = record.metadata.get("mime_type") or "image/jpeg"
        return f"data:{mime_type};base64,{base64.b64encode(raw).decode('ascii')}"

    # Stage 5 -------------------------------------------------------------

    def create_profile(
        self,
        text_analysis: dict[str, Any] | None,
        voice_analysis: dict[str, Any] | None,
        visual_analysis: dict[str, Any] | None,
    ) -> PersonaProfile:
        combined = {
            "textAnalysis": text_analysis or {},
            "voiceAnalysis": voice_analysis or {},
            "visualAnalysis": visual_analysis or {},
        }
        reply = self.llm.complete(
            self.settings.completion_model,
            [
                {"role": "system", "content": PROFILE_SYNTHESIS_PROMPT},
                {"role": "user", "content": orjson.dumps(combined).decode("utf-8")},
            ],
            max_tokens=1500,
            temperature=0.4,
        )
        try:
            raw = parse_json_reply(reply)
        except orjson.JSONDecodeError as exc:
            raise PipelineError("Failed to create persona profile") from exc
        if not isinstance(raw, dict):
            raise PipelineError("Failed to create persona profile")
        profile = PersonaProfile.from_dict(raw)

        self.db.update(
            "personas",
            {"id": self.persona_id},
            {
                "personality_traits": profile.personality,
                "speech_patterns": profile.speech_patterns,
                "common_phrases": profile.common_phrases,
                "emotional_tone": profile.emotional_tone,
                "memories": profile.memories,
                "status": "active",
                "training_progress": 100,
                "updated_at": utc_now_iso(),
            },
        )
        return profile

    # Stage 6 -------------------------------------------------------------

    def optimize_conversation_model(self, profile: PersonaProfile) -> str:
        system_prompt = build_system_prompt(profile)
        row = self.db.get("personas", self.persona_id)
        metadata = dict((row or {}).get("metadata") or {})
        metadata.update(
            {
                "systemPrompt": system_prompt,
                "trainingCompleted": utc_now_iso(),
                "voiceCharacteristics": asdict(profile.voice_characteristics)
                if profile.voice_characteristics
                else None,
            }
        )
        self.db.update("personas", {"id": self.persona_id}, {"metadata": metadata})
        return system_prompt


def _parse_or_marker(reply: str, marker: str) -> dict[str, Any]:
    try:
        parsed = parse_json_reply(reply)
    except orjson.JSONDecodeError:
        return {"error": marker}
    return parsed if isinstance(parsed, dict) else {"error": marker}


__all__ = ["TrainingPipeline"]
