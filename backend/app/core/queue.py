from __future__ import annotations

import uuid

import redis
from rq import Queue, Retry

from app.core.config import settings


def is_async_queue_enabled() -> bool:
    return bool(settings.ASYNC_QUEUE_ENABLED)


def _get_redis_connection() -> redis.Redis:
    return redis.from_url(settings.REDIS_URL)


def _get_queue() -> Queue:
    return Queue(
        name=settings.RQ_QUEUE_NAME,
        connection=_get_redis_connection(),
        default_timeout=int(settings.RQ_JOB_TIMEOUT_SECONDS),
    )


def enqueue_progress_sweep(
    *,
    user_id: uuid.UUID | None = None,
    course_id: str | None = None,
) -> str:
    queue = _get_queue()
    job = queue.enqueue(
        "app.tasks.run_progress_sweep_job",
        str(user_id) if user_id else None,
        course_id,
        retry=Retry(max=int(settings.RQ_JOB_RETRY_MAX)),
        job_timeout=int(settings.RQ_JOB_TIMEOUT_SECONDS),
    )
    return str(job.id)


def enqueue_pair_run(
    *,
    user_id: uuid.UUID,
    course_id: str,
    with_plan: bool = False,
) -> str:
    queue = _get_queue()
    job = queue.enqueue(
        "app.tasks.run_pair_job",
        str(user_id),
        course_id,
        with_plan,
        retry=Retry(max=int(settings.RQ_JOB_RETRY_MAX)),
        job_timeout=int(settings.RQ_JOB_TIMEOUT_SECONDS),
    )
    return str(job.id)
