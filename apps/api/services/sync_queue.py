"""Platform sync job queue helpers (Redis/RQ)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from redis import Redis
from rq import Queue, Retry
from rq.job import Job
from sqlalchemy import select

from config import settings
from database import async_session_maker
from models.platform_sync_job import SYNC_JOB_FAILED, SYNC_JOB_RUNNING, PlatformSyncJob


SYNC_QUEUE_NAME = "platform_sync_jobs"


def get_redis_connection() -> Redis:
    """Build Redis connection used by RQ."""
    return Redis.from_url(settings.REDIS_URL, socket_connect_timeout=5)


def get_sync_queue() -> Queue:
    """Return the configured platform sync queue."""
    return Queue(
        name=SYNC_QUEUE_NAME,
        connection=get_redis_connection(),
        default_timeout=300,
    )


def enqueue_sync_job(job_id: str) -> Job:
    """Enqueue a pending sync job; the worker picks it up and completes it."""
    queue = get_sync_queue()
    return queue.enqueue(
        "services.social_connect.process_sync_job",
        job_id,
        job_id=f"sync:{job_id}",
        retry=Retry(max=2, interval=[30, 120]),
        job_timeout=300,
        result_ttl=86400,
        failure_ttl=86400,
    )


async def recover_stalled_sync_jobs(max_age_minutes: int = 30) -> int:
    """Mark sync jobs stuck in `running` as failed after restarts/worker interruptions."""
    now = datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=max(max_age_minutes, 1))
    async with async_session_maker() as db:
        result = await db.execute(
            select(PlatformSyncJob).where(
                PlatformSyncJob.status == SYNC_JOB_RUNNING,
                PlatformSyncJob.started_at < cutoff,
            )
        )
        jobs = result.scalars().all()
        for job in jobs:
            job.status = SYNC_JOB_FAILED
            job.completed_at = now
            job.error_message = "Sync was interrupted before completion. Trigger a new sync."
        if jobs:
            await db.commit()
        return len(jobs)
