"""Persona training components."""

from .orchestrator import TrainingOrchestrator
from .pipeline import TrainingPipeline
from .prompts import build_system_prompt
from .types import STEP_DEFINITIONS, TrainingStep, default_steps

__all__ = [
    "TrainingOrchestrator",
    "TrainingPipeline",
    "build_system_prompt",
    "STEP_DEFINITIONS",
    "TrainingStep",
    "default_steps",
]
