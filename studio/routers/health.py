# studio/routers/health.py
# Health check endpoints for monitoring and load balancers
# Provides liveness and readiness probes

import time
import asyncio
import logging
from typing import Dict, Any, Optional
from fastapi import APIRouter, Response, status
from pydantic import BaseModel
import redis.asyncio as aioredis

from studio.config import settings
from studio.db.base import ping, pool_stats
from studio.services.cleanup_sweeper import SWEEP_LOCK_NAME
from studio.utils.concurrency import RedisSingleFlight

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_redis: Optional[aioredis.Redis] = None


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str  # "healthy", "degraded", "unhealthy"
    timestamp: float
    version: str = "1.0.0"
    checks: Dict[str, Dict[str, Any]] = {}


class ComponentHealth(BaseModel):
    """Individual component health."""
    status: str
    latency_ms: float = 0.0
    message: str = ""


async def check_database_health() -> ComponentHealth:
    """Check database connectivity with a trivial query."""
    start = time.time()

    try:
        result = await ping()
        latency_ms = (time.time() - start) * 1000
        if result != 1:
            return ComponentHealth(
                status="unhealthy",
                latency_ms=latency_ms,
                message="Database query returned unexpected result"
            )

        stats = pool_stats()
        free = stats["pool_size"] - stats["checked_out"]
        if stats["overflow"] > 0 and free <= 0:
            return ComponentHealth(
                status="degraded",
                latency_ms=latency_ms,
                message=f"Pool exhausted, running on overflow ({stats['overflow']})"
            )

        return ComponentHealth(
            status="healthy",
            latency_ms=latency_ms,
            message=f"Pool: {stats['checked_out']}/{stats['pool_size']} connections in use"
        )

    except asyncio.TimeoutError:
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message="Database connection timeout"
        )
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(
            status="unhealthy",
            latency_ms=(time.time() - start) * 1000,
            message=f"Database error: {type(e).__name__}"
        )


def _get_redis() -> aioredis.Redis:
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def check_sweep_state() -> Dict[str, Any]:
    """Whether a worker currently holds the cleanup sweep lock."""
    guard = RedisSingleFlight(_get_redis(), SWEEP_LOCK_NAME, ttl=settings.SWEEP_LOCK_TIMEOUT_SECONDS)
    try:
        running = await asyncio.wait_for(guard.is_held(), timeout=2.0)
    except Exception as e:
        logger.warning(f"Sweep state check failed: {e}")
        return {"status": "degraded", "running": None, "message": f"Redis error: {type(e).__name__}"}
    return {"status": "healthy", "running": running}


async def check_queue_health() -> ComponentHealth:
    """Ping the Redis instance backing the sweep queue. Degraded, never unhealthy:
    previews keep working without it, only manual and scheduled sweeps stall."""
    start = time.time()
    try:
        await asyncio.wait_for(_get_redis().ping(), timeout=2.0)
        return ComponentHealth(status="healthy", latency_ms=(time.time() - start) * 1000)
    except Exception as e:
        logger.warning(f"Queue health check failed: {e}")
        return ComponentHealth(
            status="degraded",
            latency_ms=(time.time() - start) * 1000,
            message=f"Redis error: {type(e).__name__}"
        )


@router.get("/health", response_model=HealthStatus)
async def health_check(response: Response):
    """
    Full health check endpoint.
    Returns status of all components.
    """
    timestamp = time.time()
    checks = {}

    db_health = await check_database_health()
    checks["database"] = {
        "status": db_health.status,
        "latency_ms": round(db_health.latency_ms, 2),
        "message": db_health.message
    }
    queue_health = await check_queue_health()
    checks["queue"] = {
        "status": queue_health.status,
        "latency_ms": round(queue_health.latency_ms, 2),
        "message": queue_health.message
    }
    checks["cleanup_sweep"] = await check_sweep_state()

    statuses = [c["status"] for c in checks.values()]
    if "unhealthy" in statuses:
        overall_status = "unhealthy"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif "degraded" in statuses:
        overall_status = "degraded"
        response.status_code = status.HTTP_200_OK
    else:
        overall_status = "healthy"
        response.status_code = status.HTTP_200_OK

    return HealthStatus(
        status=overall_status,
        timestamp=timestamp,
        checks=checks
    )


@router.get("/health/live")
async def liveness_probe():
    """
    Kubernetes liveness probe.
    Does NOT check external dependencies.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_probe(response: Response):
    """
    Kubernetes readiness probe.
    Returns 200 only if the database is reachable.
    """
    db_health = await check_database_health()

    if db_health.status == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "not_ready",
            "reason": db_health.message
        }

    return {"status": "ready"}


@router.get("/health/db")
async def database_health(response: Response):
    """
    Detailed database health check.
    Returns pool statistics and connection status.
    """
    try:
        start = time.time()
        await ping()
        latency_ms = (time.time() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "pool": pool_stats()
        }

    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "unhealthy",
            "error": str(e)
        }
