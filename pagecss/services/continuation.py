"""Hand-off of long drains to a later invocation.

A drain pass stops after ``batch_cap`` jobs; the scheduler then arranges a
fresh pass instead of recursing, so every invocation stays bounded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Deque, Optional

from celery import Celery

from pagecss.core.config import settings
from pagecss.core.logging import get_logger
from pagecss.models.job import ArtifactType

if TYPE_CHECKING:
    from pagecss.services.worker import GenerationWorker

logger = get_logger(__name__)

DRAIN_TASK = "css.drain"


class ContinuationScheduler(ABC):
    """Decides when a drain pass should be resumed elsewhere."""

    def __init__(self, batch_cap: Optional[int] = None) -> None:
        self.batch_cap = batch_cap or settings.batch_cap

    def maybe_continue(self, batch_index: int, artifact_type: ArtifactType) -> bool:
        if batch_index < self.batch_cap:
            return False

        logger.info("drain_continuation_scheduled", artifact_type=artifact_type.value, processed=batch_index)
        self.schedule_continuation(artifact_type)
        return True

    @abstractmethod
    def schedule_continuation(self, artifact_type: ArtifactType) -> None:
        """Arrange a fresh continuing drain of ``artifact_type``."""


class CeleryContinuationScheduler(ContinuationScheduler):
    """Resumes draining through the ``css.drain`` Celery task."""

    def __init__(self, app: Celery, countdown: int = 1, batch_cap: Optional[int] = None) -> None:
        super().__init__(batch_cap)
        self._app = app
        self._countdown = countdown

    def schedule_continuation(self, artifact_type: ArtifactType) -> None:
        self._app.send_task(
            DRAIN_TASK,
            kwargs={"artifact_type": artifact_type.value},
            countdown=self._countdown,
        )


class LocalContinuationScheduler(ContinuationScheduler):
    """In-process trampoline for long-running processes and tests."""

    def __init__(self, batch_cap: Optional[int] = None) -> None:
        super().__init__(batch_cap)
        self.pending: Deque[ArtifactType] = deque()

    def schedule_continuation(self, artifact_type: ArtifactType) -> None:
        if artifact_type not in self.pending:
            self.pending.append(artifact_type)

    def run_pending(self, worker: "GenerationWorker", max_passes: int = 100) -> int:
        """Run queued continuation passes until none is left. Returns the pass count."""

        passes = 0
        while self.pending and passes < max_passes:
            artifact_type = self.pending.popleft()
            worker.drain(artifact_type, allow_continue=True)
            passes += 1
        return passes
