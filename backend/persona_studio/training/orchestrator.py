"""Training orchestration: step state, persona status and completion."""

from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Callable, Protocol

from persona_studio.core.errors import PersonaStudioError, TrainingConflictError
from persona_studio.core.logging import get_logger
from persona_studio.core.metrics import TRAINING_DURATION, TRAINING_RUNS
from persona_studio.db.sqlite import SQLiteDatabase
from persona_studio.models.entities import PersonaProfile
from persona_studio.training.types import (
    ProgressCallback,
    TrainingSnapshot,
    TrainingStep,
    default_steps,
)
from persona_studio.utils.time import utc_now_iso

logger = get_logger(__name__)


class Pipeline(Protocol):
    def run(self) -> PersonaProfile: ...


PipelineFactory = Callable[[str, ProgressCallback], Pipeline]


class TrainingOrchestrator:
    """Drive one persona's training run and expose step-level progress.

    Progress callbacks may arrive from a worker thread while the API reads
    snapshots, so step state is guarded by a lock.
    """

    def __init__(
        self,
        persona_id: str,
        database: SQLiteDatabase,
        pipeline_factory: PipelineFactory,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self.persona_id = persona_id
        self.db = database
        self.pipeline_factory = pipeline_factory
        self.on_complete = on_complete
        self._steps = default_steps()
        self._lock = threading.RLock()
        self._training = False
        self._completion_signalled = False
        self._error: str | None = None
        self.profile: PersonaProfile | None = None

    # State ------------------------------------------------------------

    @property
    def steps(self) -> list[TrainingStep]:
        with self._lock:
            return [replace(step) for step in self._steps]

    @property
    def overall_progress(self) -> float:
        with self._lock:
            return sum(step.progress for step in self._steps) / len(self._steps)

    @property
    def is_complete(self) -> bool:
        with self._lock:
            return all(step.status == "completed" for step in self._steps)

    @property
    def is_training(self) -> bool:
        return self._training

    @property
    def error(self) -> str | None:
        return self._error

    def snapshot(self) -> TrainingSnapshot:
        with self._lock:
            return TrainingSnapshot(
                persona_id=self.persona_id,
                steps=self.steps,
                overall_progress=self.overall_progress,
                is_training=self._training,
                is_complete=self.is_complete,
                error=self._error,
            )

    # Operations ---------------------------------------------------------

    def begin(self) -> None:
        """Claim the run and mark the persona as training.

        Split from ``run`` so the API can reject a conflicting start before
        scheduling the pipeline in the background.
        """
        with self._lock:
            if self._training:
                raise TrainingConflictError("Training is already in progress for this persona")
            self._training = True
            self._completion_signalled = False
            self._error = None
            self.profile = None
            self._reset_steps()
        try:
            self._update_persona_status("training", 0)
        except PersonaStudioError:
            with self._lock:
                self._training = False
            raise

    def run(self) -> PersonaProfile | None:
        """Run the pipeline for a claimed start; returns the profile or None on failure."""
        started = time.monotonic()
        try:
            profile = self.pipeline_factory(self.persona_id, self.report_progress).run()
        except PersonaStudioError as exc:
            with self._lock:
                self._error = str(exc) or "Training failed"
                for step in self._steps:
                    if step.status == "processing":
                        step.status = "error"
            TRAINING_RUNS.labels("failed").inc()
            logger.error("Training failed: %s", self._error, extra={"ctx_persona_id": self.persona_id})
            return None
        finally:
            with self._lock:
                self._training = False
            TRAINING_DURATION.observe(time.monotonic() - started)

        with self._lock:
            self.profile = profile
        TRAINING_RUNS.labels("completed").inc()
        logger.info("AI persona training completed", extra={"ctx_persona_id": self.persona_id})
        return profile

    def start(self) -> PersonaProfile | None:
        self.begin()
        return self.run()

    def reset(self) -> None:
        """Retry: every step back to pending/0 and the error cleared."""
        with self._lock:
            if self._training:
                raise TrainingConflictError("Cannot reset while training is in progress")
            self._reset_steps()
            self._error = None
            self._completion_signalled = False

    def report_progress(self, step_id: str, progress: int) -> None:
        """Progress callback handed to the pipeline; touches only the named step."""
        with self._lock:
            step = next((item for item in self._steps if item.id == step_id), None)
            if step is None:
                logger.warning("Progress for unknown training step %s", step_id)
                return
            value = max(0, min(100, int(progress)))
            if step.status == "processing":
                value = max(step.progress, value)
            if value >= 100:
                step.status = "completed"
                step.progress = 100
            else:
                step.status = "processing"
                step.progress = value
            fire = self._training and not self._completion_signalled and self.is_complete
            if fire:
                self._completion_signalled = True
        if fire:
            self._handle_completion()

    def _handle_completion(self) -> None:
        try:
            self._update_persona_status("active", 100)
        except PersonaStudioError as exc:
            logger.error("Error updating persona status: %s", exc, extra={"ctx_persona_id": self.persona_id})
        if self.on_complete is not None:
            self.on_complete()

    def _reset_steps(self) -> None:
        for step in self._steps:
            step.status = "pending"
            step.progress = 0

    def _update_persona_status(self, status: str, progress: int) -> None:
        self.db.update(
            "personas",
            {"id": self.persona_id},
            {"status": status, "training_progress": progress, "updated_at": utc_now_iso()},
        )


__all__ = ["TrainingOrchestrator", "PipelineFactory"]
