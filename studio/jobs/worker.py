from arq import cron
from arq.worker import func
from arq.connections import RedisSettings
from opentelemetry import trace

from studio import config
from studio.config import settings
from studio.db.base import async_engine
from studio.dependencies import get_preview_service
from studio.observability.logger import configure_logging
from studio.services.cleanup_sweeper import SWEEP_LOCK_NAME, CleanupSweeper
from studio.utils.concurrency import RedisSingleFlight
from studio.utils.telemetry import init_otel, shutdown_otel


def build_sweeper(redis) -> CleanupSweeper:
    """Sweeper whose guard is shared with every other worker on this Redis."""
    guard = RedisSingleFlight(redis, SWEEP_LOCK_NAME, ttl=settings.SWEEP_LOCK_TIMEOUT_SECONDS)
    return CleanupSweeper(get_preview_service(), guard=guard)


async def sweep_preview_environments(ctx) -> dict:
    """Hourly reclamation of expired, idle and stuck preview schemas."""
    r = ctx["redis"]
    tracer = trace.get_tracer("worker")
    await r.incr("jobs:sweeps:started")
    with tracer.start_as_current_span("sweep_preview_environments"):
        report = await ctx["sweeper"].run_once()
    if report.skipped:
        await r.incr("jobs:sweeps:skipped")
    elif report.errors:
        await r.incr("jobs:sweeps:partial")
    else:
        await r.incr("jobs:sweeps:finished")
    return report.as_dict()


class WorkerSettings:
    functions = [func(sweep_preview_environments, keep_result=3600)]  # keep result for 1 hour
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    cron_jobs = [
        # unique only stops duplicate cron runs; the sweep lock covers manual runs too
        cron(
            sweep_preview_environments,
            minute={settings.SWEEP_CRON_MINUTE},
            unique=True,
            run_at_startup=False,
            keep_result=3600,
        ),
    ]

    @staticmethod
    async def startup(ctx):
        configure_logging(config)
        init_otel(engine=async_engine, service_name=f"{settings.SERVICE_NAME}-worker", console_export=settings.DEBUG)
        ctx["sweeper"] = build_sweeper(ctx["redis"])

    @staticmethod
    async def shutdown(ctx):
        await async_engine.dispose()
        shutdown_otel()
