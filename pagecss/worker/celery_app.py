"""Celery application configuration."""

from celery import Celery

from pagecss.core.config import settings

celery_app = Celery("pagecss", include=["pagecss.tasks.css_tasks"])

broker_url = settings.celery_broker_url or settings.redis_url
result_backend = settings.celery_result_backend or settings.redis_url

celery_app.conf.update(
    broker_url=broker_url,
    result_backend=result_backend,
    task_default_queue="pagecss",
    # Local execution budget for one drain pass, external call included.
    task_soft_time_limit=settings.generation_time_budget_seconds,
    task_time_limit=settings.generation_time_budget_seconds + 60,
    worker_max_tasks_per_child=100,
    task_track_started=True,
    task_always_eager=settings.celery_always_eager,
    beat_schedule={
        "cron-ccss": {"task": "css.cron_ccss", "schedule": float(settings.cron_interval_seconds)},
        "cron-ucss": {"task": "css.cron_ucss", "schedule": float(settings.cron_interval_seconds)},
    },
)
