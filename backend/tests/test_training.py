"""Tests for training orchestration and the persona pipeline."""

from __future__ import annotations

import pytest

from persona_studio.core.errors import PipelineError, TrainingConflictError
from persona_studio.models.entities import PersonaProfile
from persona_studio.training.orchestrator import TrainingOrchestrator
from persona_studio.training.pipeline import TrainingPipeline
from persona_studio.training.prompts import PROFILE_SYNTHESIS_PROMPT, TEXT_ANALYSIS_PROMPT
from persona_studio.training.types import (
    CONTENT_ANALYSIS,
    CONVERSATION_TRAINING,
    FINAL_OPTIMIZATION,
    PERSONALITY_EXTRACTION,
    STEP_DEFINITIONS,
    VOICE_MODELING,
)
from persona_studio.utils.ids import new_uuid
from persona_studio.utils.time import utc_now_iso


class ScriptedPipeline:
    """Reports 10 then 100 for every step, optionally failing inside one."""

    def __init__(self, persona_id, on_progress, fail_at: str | None = None) -> None:
        self.persona_id = persona_id
        self.on_progress = on_progress
        self.fail_at = fail_at

    def run(self) -> PersonaProfile:
        for step_id, _, _ in STEP_DEFINITIONS:
            self.on_progress(step_id, 10)
            if step_id == self.fail_at:
                raise PipelineError("Failed to train AI persona: boom")
            self.on_progress(step_id, 100)
        return PersonaProfile(personality="Warm")


def _orchestrator(db, persona_id, fail_at=None, on_complete=None) -> TrainingOrchestrator:
    return TrainingOrchestrator(
        persona_id,
        db,
        lambda pid, cb: ScriptedPipeline(pid, cb, fail_at=fail_at),
        on_complete=on_complete,
    )


def test_overall_progress_is_mean_of_steps(db, persona) -> None:
    orchestrator = _orchestrator(db, persona.id)
    assert orchestrator.overall_progress == 0
    orchestrator.report_progress(CONTENT_ANALYSIS, 50)
    orchestrator.report_progress(VOICE_MODELING, 100)
    assert orchestrator.overall_progress == 30.0
    assert orchestrator.steps[0].status == "processing"
    assert orchestrator.steps[1].status == "completed"


def test_progress_is_monotonic_while_processing(db, persona) -> None:
    orchestrator = _orchestrator(db, persona.id)
    orchestrator.report_progress(CONTENT_ANALYSIS, 60)
    orchestrator.report_progress(CONTENT_ANALYSIS, 30)
    assert orchestrator.steps[0].progress == 60
    orchestrator.report_progress(CONTENT_ANALYSIS, 250)
    assert orchestrator.steps[0].progress == 100
    assert orchestrator.steps[0].status == "completed"


def test_unknown_step_is_ignored(db, persona) -> None:
    orchestrator = _orchestrator(db, persona.id)
    orchestrator.report_progress("voice-cloning", 50)
    assert orchestrator.overall_progress == 0


def test_completion_marks_persona_active_once(db, persona) -> None:
    completions: list[bool] = []
    orchestrator = _orchestrator(db, persona.id, on_complete=lambda: completions.append(True))
    profile = orchestrator.start()

    assert profile is not None and profile.personality == "Warm"
    assert orchestrator.is_complete
    assert orchestrator.overall_progress == 100
    assert not orchestrator.is_training
    assert completions == [True]
    row = db.get("personas", persona.id)
    assert row["status"] == "active"
    assert row["training_progress"] == 100


def test_failure_marks_processing_step_as_error(db, persona) -> None:
    orchestrator = _orchestrator(db, persona.id, fail_at=PERSONALITY_EXTRACTION)
    assert orchestrator.start() is None

    statuses = {step.id: step.status for step in orchestrator.steps}
    assert statuses[CONTENT_ANALYSIS] == "completed"
    assert statuses[VOICE_MODELING] == "completed"
    assert statuses[PERSONALITY_EXTRACTION] == "error"
    assert statuses[CONVERSATION_TRAINING] == "pending"
    assert orchestrator.error == "Failed to train AI persona: boom"
    assert not orchestrator.is_training
    assert db.get("personas", persona.id)["status"] == "training"


def test_reset_then_retry_completes(db, persona) -> None:
    attempts: list[int] = []

    def factory(pid, cb):
        attempts.append(len(attempts) + 1)
        return ScriptedPipeline(pid, cb, fail_at=VOICE_MODELING if len(attempts) == 1 else None)

    orchestrator = TrainingOrchestrator(persona.id, db, factory)
    assert orchestrator.start() is None
    orchestrator.reset()
    assert all(step.status == "pending" and step.progress == 0 for step in orchestrator.steps)
    assert orchestrator.error is None

    profile = orchestrator.start()
    assert profile is not None and profile.personality == "Warm"
    assert attempts == [1, 2]
    assert all(step.status == "completed" for step in orchestrator.steps)
    assert db.get("personas", persona.id)["status"] == "active"


def test_conflicting_start_and_reset_rejected(db, persona) -> None:
    orchestrator = _orchestrator(db, persona.id)
    orchestrator.begin()
    with pytest.raises(TrainingConflictError):
        orchestrator.begin()
    with pytest.raises(TrainingConflictError):
        orchestrator.reset()
    assert db.get("personas", persona.id)["status"] == "training"
    orchestrator.run()
    assert not orchestrator.is_training


# Pipeline -----------------------------------------------------------------


def _content(db, persona_id, content_type, **fields) -> dict:
    now = utc_now_iso()
    row = {
        "id": new_uuid(),
        "persona_id": persona_id,
        "content_type": content_type,
        "metadata": {},
        "processing_status": "completed",
        "created_at": now,
        "updated_at": now,
    }
    row.update(fields)
    return db.insert("persona_content", row)


def _pipeline(db, store, fake_llm, settings, persona_id, events=None) -> TrainingPipeline:
    events = events if events is not None else []
    return TrainingPipeline(
        persona_id=persona_id,
        database=db,
        object_store=store,
        llm=fake_llm,
        settings=settings,
        on_progress=lambda step_id, progress: events.append((step_id, progress)),
    )


def test_text_only_training_builds_profile(db, store, fake_llm, settings, persona, sample_text) -> None:
    _content(db, persona.id, "text", content_text=sample_text)
    _content(db, persona.id, "text", content_text="never used", processing_status="processing")
    events: list[tuple[str, int]] = []
    profile = _pipeline(db, store, fake_llm, settings, persona.id, events).run()

    assert profile.personality == "Warm, curious and quick to laugh"
    assert profile.common_phrases == ["lovely day", "well, well"]
    assert profile.voice_characteristics is not None and profile.voice_characteristics.tone == "soft"

    text_call = fake_llm.calls[0]
    assert text_call["messages"][0]["content"] == TEXT_ANALYSIS_PROMPT
    assert text_call["messages"][1]["content"] == sample_text
    assert (text_call["max_tokens"], text_call["temperature"]) == (1500, 0.3)
    assert fake_llm.calls[-1]["messages"][0]["content"] == PROFILE_SYNTHESIS_PROMPT
    assert len(fake_llm.calls) == 2

    row = db.get("personas", persona.id)
    assert row["status"] == "active"
    assert row["emotional_tone"] == "cheerful"
    assert row["memories"] == ["grew tomatoes every summer", "taught school for thirty years"]
    assert row["metadata"]["systemPrompt"].startswith("You are embodying a specific person")
    assert "lovely day, well, well" in row["metadata"]["systemPrompt"]
    assert row["metadata"]["voiceCharacteristics"]["tone"] == "soft"

    for step_id, _, _ in STEP_DEFINITIONS:
        assert (step_id, 100) in events
    assert events[-1] == (FINAL_OPTIMIZATION, 100)


def test_malformed_profile_aborts_training(db, store, fake_llm, settings, persona, sample_text) -> None:
    _content(db, persona.id, "text", content_text=sample_text)
    fake_llm.by_prompt[PROFILE_SYNTHESIS_PROMPT] = "I could not produce JSON, sorry."
    with pytest.raises(PipelineError) as excinfo:
        _pipeline(db, store, fake_llm, settings, persona.id).run()
    assert str(excinfo.value) == "Failed to train AI persona: Failed to create persona profile"
    assert "systemPrompt" not in (db.get("personas", persona.id)["metadata"] or {})


def test_malformed_text_analysis_becomes_marker(db, store, fake_llm, settings, persona) -> None:
    fake_llm.by_prompt[TEXT_ANALYSIS_PROMPT] = "not json"
    pipeline = _pipeline(db, store, fake_llm, settings, persona.id)
    assert pipeline.analyze_text(["hello"]) == {"error": "Failed to parse text analysis"}
    assert pipeline.analyze_text([]) is None


def test_audio_transcribed_and_failures_skipped(db, store, fake_llm, settings, persona) -> None:
    good_url = store.put(settings.storage_bucket, "1-voice.mp3", b"ID3audio")
    _content(db, persona.id, "audio", file_name="voice.mp3", file_url=good_url)
    _content(
        db,
        persona.id,
        "audio",
        file_name="gone.mp3",
        file_url=store.public_url(settings.storage_bucket, "missing.mp3"),
    )
    events: list[tuple[str, int]] = []
    pipeline = _pipeline(db, store, fake_llm, settings, persona.id, events)
    data = pipeline.gather_training_data()
    analysis = pipeline.analyze_audio(data.audio)

    assert fake_llm.transcriptions == ["voice.mp3"]
    assert analysis == {"speechPatterns": ["pauses often"]}
    assert events == [(VOICE_MODELING, 40), (VOICE_MODELING, 70)]


def test_images_described_and_videos_skipped(db, store, fake_llm, settings, persona) -> None:
    url = store.put(settings.storage_bucket, "1-garden.png", b"\x89PNGdata")
    _content(db, persona.id, "image", file_name="garden.png", file_url=url, metadata={"mime_type": "image/png"})
    _content(db, persona.id, "video", file_name="party.mp4", file_url="http://testserver/storage/x/party.mp4")
    pipeline = _pipeline(db, store, fake_llm, settings, persona.id)
    data = pipeline.gather_training_data()
    visual = pipeline.analyze_visual(data.images, data.video)

    assert visual["expressions"] == ["Smiling person in a garden."]
    call = fake_llm.calls[0]
    assert call["model"] == settings.vision_model
    assert call["max_tokens"] == 300
    image_part = call["messages"][0]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")
