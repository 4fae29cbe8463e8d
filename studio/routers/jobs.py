from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, status
from arq.connections import ArqRedis, create_pool, RedisSettings
from arq.constants import result_key_prefix
from arq.jobs import Job

from studio.config import settings
from studio.middleware.error_handler import ConflictError
from studio.schemas.common import JobEnqueueResponse, JobStatusResponse


router = APIRouter(tags=["Jobs"])

# Module-level connection pool (lazy init)
_arq_pool: Optional[ArqRedis] = None

# Fixed id: arq refuses to enqueue a job whose id already has a queued job or a kept result
MANUAL_SWEEP_JOB_ID = "preview-sweep:manual"


async def _get_arq() -> ArqRedis:
    """Get or create shared ArqRedis connection pool."""
    global _arq_pool
    if _arq_pool is None:
        _arq_pool = await create_pool(RedisSettings.from_dsn(settings.REDIS_URL))
    return _arq_pool


@router.post("/jobs/sweep", response_model=JobEnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_sweep() -> JobEnqueueResponse:
    """Run the cleanup sweep now instead of waiting for the hourly tick."""
    arq = await _get_arq()
    # A finished run's kept result also blocks the id; only a queued or running job should
    await arq.delete(result_key_prefix + MANUAL_SWEEP_JOB_ID)
    job = await arq.enqueue_job("sweep_preview_environments", _job_id=MANUAL_SWEEP_JOB_ID)
    if job is None:
        raise ConflictError(
            "A manual sweep is already queued or running",
            details={"task_id": MANUAL_SWEEP_JOB_ID},
        )
    return JobEnqueueResponse(task_id=job.job_id)


@router.get("/jobs/metrics")
async def jobs_metrics():
    """Return counters of sweep activity in Redis."""
    arq = await _get_arq()

    async def _get_int(key: str) -> int:
        v = await arq.get(key)
        return int(v) if v is not None else 0

    return {
        "queued": await arq.zcard("arq:queue") or 0,
        "started": await _get_int("jobs:sweeps:started"),
        "finished": await _get_int("jobs:sweeps:finished"),
        "partial": await _get_int("jobs:sweeps:partial"),
        "skipped": await _get_int("jobs:sweeps:skipped"),
    }


@router.get("/jobs/{task_id}", response_model=JobStatusResponse)
async def get_job_status(task_id: str) -> JobStatusResponse:
    arq = await _get_arq()
    job = Job(task_id, arq)
    job_status = await job.status()
    result = None
    if job_status.value == "complete":
        info = await job.result_info()
        result = info.result if info else None
    return JobStatusResponse(task_id=task_id, status=job_status.value, result=result)
