"""Celery tasks that drain the CSS generation queues."""

from __future__ import annotations

from celery.exceptions import SoftTimeLimitExceeded

from pagecss.core.logging import get_logger
from pagecss.models.job import ArtifactType
from pagecss.services.continuation import DRAIN_TASK
from pagecss.services.registry import get_services
from pagecss.worker.celery_app import celery_app

logger = get_logger(__name__)


def _drain(artifact_type: ArtifactType, allow_continue: bool) -> dict:
    """Run one drain pass inside the task's soft time limit.

    The limit covers the whole pass, up to ``batch_cap`` jobs, not each job.
    When it fires mid-batch a continuing drain hands the rest of the queue to
    a fresh task, so an overrun only delays the jobs still waiting.
    """

    services = get_services()
    services.summary.reload()

    logger.info("drain_task_started", artifact_type=artifact_type.value, allow_continue=allow_continue)
    try:
        result = services.worker.drain(artifact_type, allow_continue=allow_continue)
    except SoftTimeLimitExceeded:
        # The in-flight marker stays set and clears itself after the cooldown.
        logger.warning("drain_task_time_budget_exceeded", artifact_type=artifact_type.value)
        continued = False
        # Jobs popped before the interrupt are already persisted in history.
        services.summary.reload()
        if allow_continue and services.queue.size(artifact_type):
            services.scheduler.schedule_continuation(artifact_type)
            continued = True
        return {"artifact_type": artifact_type.value, "skipped_reason": "time_budget", "continued": continued}

    logger.info(
        "drain_task_completed",
        artifact_type=artifact_type.value,
        attempted=result.attempted,
        generated=result.generated,
        continued=result.continued,
    )
    return result.model_dump(mode="json")


@celery_app.task(name=DRAIN_TASK)
def drain_queue(artifact_type: str) -> dict:
    """Continuing drain, used by operator actions and continuations."""

    return _drain(ArtifactType(artifact_type), allow_continue=True)


@celery_app.task(name="css.cron_ccss")
def cron_ccss() -> dict:
    """Periodic one-shot critical CSS generation."""

    return _drain(ArtifactType.critical, allow_continue=False)


@celery_app.task(name="css.cron_ucss")
def cron_ucss() -> dict:
    """Periodic one-shot unused CSS generation."""

    return _drain(ArtifactType.unused, allow_continue=False)
