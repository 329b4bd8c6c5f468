"""Training data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Literal

from persona_studio.models.entities import ContentRecord

StepStatus = Literal["pending", "processing", "completed", "error"]
ProgressCallback = Callable[[str, int], None]

CONTENT_ANALYSIS = "content-analysis"
VOICE_MODELING = "voice-modeling"
PERSONALITY_EXTRACTION = "personality-extraction"
CONVERSATION_TRAINING = "conversation-training"
FINAL_OPTIMIZATION = "final-optimization"

STEP_DEFINITIONS: tuple[tuple[str, str, str], ...] = (
    (CONTENT_ANALYSIS, "Content Analysis", "Analyzing uploaded videos, audio, and text content"),
    (VOICE_MODELING, "Voice Modeling", "Creating voice synthesis model from audio samples"),
    (PERSONALITY_EXTRACTION, "Personality Extraction", "Learning speech patterns, mannerisms, and personality traits"),
    (CONVERSATION_TRAINING, "Conversation Training", "Training conversational AI with extracted personality"),
    (FINAL_OPTIMIZATION, "Final Optimization", "Optimizing model for real-time conversations"),
)


@dataclass(slots=True)
class TrainingStep:
    id: str
    name: str
    description: str
    status: StepStatus = "pending"
    progress: int = 0


def default_steps() -> list[TrainingStep]:
    return [TrainingStep(id=step_id, name=name, description=description) for step_id, name, description in STEP_DEFINITIONS]


@dataclass(slots=True)
class TrainingData:
    """Completed content records bucketed by category."""

    text: list[str] = field(default_factory=list)
    audio: list[ContentRecord] = field(default_factory=list)
    video: list[ContentRecord] = field(default_factory=list)
    images: list[ContentRecord] = field(default_factory=list)


@dataclass(slots=True)
class TrainingSnapshot:
    persona_id: str
    steps: list[TrainingStep]
    overall_progress: float
    is_training: bool
    is_complete: bool
    error: str | None


__all__ = [
    "StepStatus",
    "ProgressCallback",
    "STEP_DEFINITIONS",
    "TrainingStep",
    "TrainingData",
    "TrainingSnapshot",
    "default_steps",
]
