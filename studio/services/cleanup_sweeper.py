# studio/services/cleanup_sweeper.py
# Recurring reclamation of preview schemas: hard TTL, idle, stuck provisioning

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from opentelemetry import trace

from studio.observability.metrics import SWEEPS
from studio.services.preview_service import PreviewService
from studio.utils.concurrency import RedisSingleFlight, SingleFlight
from studio.utils.logger import log_exception, log_info

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Redis key of the guard shared by every worker process
SWEEP_LOCK_NAME = "preview:cleanup-sweep:lock"


@dataclass
class SweepReport:
    started_at: datetime
    skipped: bool = False
    expired_deleted: int = 0
    idle_dropped: int = 0
    stuck_failed: int = 0
    errors: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.skipped and not self.errors

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        return data


class CleanupSweeper:
    """
    Runs the three reclamation passes, one sweep at a time.

    A tick that arrives while a sweep is still running is skipped rather than
    queued, so the same schema is never dropped by two overlapping sweeps.
    Workers pass a RedisSingleFlight so the guard spans processes; the
    in-process default only covers a single event loop.
    Passes run sequentially; a registry error aborts only the pass it hit
    and is reported, and the next scheduled tick retries.
    """

    def __init__(
        self,
        service: PreviewService,
        guard: Optional[Union[SingleFlight, RedisSingleFlight]] = None,
    ):
        self._service = service
        self._guard = guard or SingleFlight("preview-cleanup-sweep")

    @property
    def running(self) -> bool:
        return self._guard.in_flight

    async def run_once(self) -> SweepReport:
        report = SweepReport(started_at=datetime.now(timezone.utc))
        started = time.perf_counter()

        async with self._guard.try_acquire() as acquired:
            if not acquired:
                report.skipped = True
                SWEEPS.labels("skipped").inc()
                logger.warning("Cleanup sweep already running; tick skipped")
                return report

            with tracer.start_as_current_span("preview.sweep"):
                passes = (
                    ("expired", "expired_deleted", self._service.reclaim_expired),
                    ("idle", "idle_dropped", self._service.reclaim_idle),
                    ("stuck", "stuck_failed", self._service.fail_stuck_provisioning),
                )
                for name, attr, run_pass in passes:
                    with tracer.start_as_current_span(f"preview.sweep.{name}"):
                        try:
                            setattr(report, attr, await run_pass())
                        except Exception as e:
                            report.errors[name] = f"{type(e).__name__}: {e}"
                            log_exception(e, context="cleanup sweep", pass_name=name)

        report.duration_seconds = round(time.perf_counter() - started, 3)
        SWEEPS.labels("completed" if report.ok else "partial").inc()
        log_info(
            f"Cleanup sweep finished in {report.duration_seconds}s: "
            f"expired={report.expired_deleted} idle={report.idle_dropped} stuck={report.stuck_failed}",
            **report.as_dict(),
        )
        return report
