"""De-duplicating generation queues, one per artifact type."""

from __future__ import annotations

from typing import Dict, List

from pagecss.core.logging import get_logger
from pagecss.models.job import ArtifactType, GenerationJob
from pagecss.models.summary import HISTORY_LIMIT
from pagecss.services.summary_store import SummaryStore

logger = get_logger(__name__)


class GenerationQueue:
    """Queue operations over the persisted summary."""

    def __init__(self, store: SummaryStore) -> None:
        self._store = store

    def enqueue(self, artifact_type: ArtifactType, job: GenerationJob) -> None:
        """Add ``job``; an existing entry with the same key is replaced."""

        self._store.state.queue(artifact_type)[job.queue_key] = job
        self._store.persist()
        logger.debug(
            "queue_job_added",
            artifact_type=artifact_type.value,
            queue_key=job.queue_key,
            page_key=job.page_key,
            user_agent=job.client_identity,
            fingerprint=job.fingerprint,
            uid=job.session_identity,
        )

    def peek_all(self, artifact_type: ArtifactType) -> List[GenerationJob]:
        return list(self._store.state.queue(artifact_type).values())

    def size(self, artifact_type: ArtifactType) -> int:
        return len(self._store.state.queue(artifact_type))

    def history(self, artifact_type: ArtifactType) -> Dict[str, str]:
        return dict(self._store.state.history(artifact_type))

    def dequeue(self, artifact_type: ArtifactType, queue_key: str) -> GenerationJob | None:
        """Pop a job into the history log and persist."""

        state = self._store.state
        job = state.queue(artifact_type).pop(queue_key, None)

        history = state.history(artifact_type)
        history[queue_key] = job.request_url if job else ""
        while len(history) > HISTORY_LIMIT:
            del history[next(iter(history))]

        self._store.persist()
        return job

    def clear(self, artifact_type: ArtifactType) -> bool:
        """Drop every waiting job. Returns False when the queue was already empty."""

        queue = self._store.state.queue(artifact_type)
        if not queue:
            return False

        queue.clear()
        self._store.persist()
        logger.info("queue_cleared", artifact_type=artifact_type.value)
        return True
