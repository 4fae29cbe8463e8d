# studio/services/preview_service.py
# Preview lifecycle orchestrator: the single authority for PreviewSession state transitions

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import string
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Set

from opentelemetry import trace

from studio.config import Settings, settings as default_settings
from studio.middleware.error_handler import ConflictError, NotFoundError, ValidationError
from studio.models.preview_session import SCHEMA_BEARING_STATUSES, PreviewSession, SchemaStatus
from studio.observability.metrics import (
    DROP_FAILURES,
    PROVISIONING_LATENCY,
    PROVISIONING_OUTCOMES,
    SESSIONS_CREATED,
    SESSIONS_RECLAIMED,
)
from studio.provisioning.schema_provisioner import SchemaProvisioner
from studio.repositories.preview_session_repository import SessionRegistry
from studio.seeding.composer import SeedingComposer
from studio.utils.concurrency import Settled, settle_all, with_timeout
from studio.utils.logger import log_exception, log_info

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_FEATURE_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*(\.[a-z0-9][a-z0-9_-]*)*$")
_LAST_ERROR_MAX = 500


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate_session_token(length: int = 32) -> str:
    """Generate a URL-safe public session token."""
    alphabet = string.ascii_letters + string.digits
    return ''.join(secrets.choice(alphabet) for _ in range(length))


class PreviewService:
    """
    Owns the PreviewSession state machine:

        NONE -> PROVISIONING -> READY -> DROPPED
                     |            \\
                     v             (hard TTL: row deleted)
                   FAILED

    Every transition is a conditional update on the expected prior status,
    so a sweep never downgrades a session that changed state moments earlier.
    Provisioning runs off the request path, at most once per session, and a
    failure is terminal: the visitor has to create a new session.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        provisioner: SchemaProvisioner,
        composer: SeedingComposer,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._registry = registry
        self._provisioner = provisioner
        self._composer = composer
        self._settings = settings
        self._clock = clock
        self._tasks: Set[asyncio.Task] = set()
        self._timed_drop = with_timeout(settings.PREVIEW_DROP_TIMEOUT_SECONDS)(provisioner.drop_schema)

    # --- Thresholds ---

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self._settings.PREVIEW_TTL_HOURS)

    @property
    def idle_threshold(self) -> timedelta:
        return timedelta(minutes=self._settings.PREVIEW_IDLE_MINUTES)

    @property
    def stuck_threshold(self) -> timedelta:
        return timedelta(minutes=self._settings.PREVIEW_STUCK_MINUTES)

    # --- Visitor-facing operations ---

    async def create_session(
        self,
        tier: str,
        features: Iterable[str],
        template_id: Optional[str] = None,
    ) -> PreviewSession:
        """Insert a NONE-status session and start provisioning in the background."""
        tier, selected = self._validate(tier, features)
        now = self._clock()
        session = PreviewSession(
            id=uuid.uuid4().hex,
            session_id=_generate_session_token(),
            tier=tier,
            template_id=template_id or None,
            selected_features=selected,
            schema_status=SchemaStatus.NONE,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + self.ttl,
        )
        await self._registry.insert(session)
        SESSIONS_CREATED.labels(tier).inc()
        log_info(
            f"Preview session {session.session_id} created",
            session_id=session.session_id,
            tier=tier,
            feature_count=len(selected),
        )

        self._launch_provisioning(session)
        return session

    async def get_session(self, session_id: str) -> PreviewSession:
        session = await self._registry.get_by_session_id(session_id)
        if session is None:
            raise NotFoundError("Preview session not found", details={"session_id": session_id})
        if session.is_expired(self._clock()):
            raise NotFoundError("Preview session expired", details={"session_id": session_id})
        return session

    async def record_access(self, session_id: str, page_views: int = 1, duration: int = 0) -> bool:
        """Touch last_accessed_at and bump telemetry. Never changes schema_status."""
        return await self._registry.touch(
            session_id,
            self._clock(),
            page_views=max(0, page_views),
            duration=max(0, duration),
        )

    async def end_session(self, session_id: str) -> PreviewSession:
        """
        Visitor-initiated teardown.

        READY sessions release their schema; sessions that never got one are
        just marked DROPPED. A PROVISIONING session is left to its own
        provisioning task, which is the only safe owner of that schema.
        """
        session = await self._registry.get_by_session_id(session_id)
        if session is None:
            raise NotFoundError("Preview session not found", details={"session_id": session_id})

        if session.schema_status == SchemaStatus.PROVISIONING:
            raise ConflictError(
                "Preview is still being provisioned",
                details={"session_id": session_id, "status": session.schema_status.value},
            )

        if session.schema_status == SchemaStatus.READY:
            released = await self._registry.transition(
                session_id,
                {SchemaStatus.READY},
                {"schema_status": SchemaStatus.DROPPED, "schema_name": None},
            )
            if released and session.schema_name:
                await self._drop_quietly(session.schema_name, context=f"end_session {session_id}")
        elif session.schema_status in (SchemaStatus.NONE, SchemaStatus.FAILED):
            await self._registry.transition(
                session_id,
                {SchemaStatus.NONE, SchemaStatus.FAILED},
                {"schema_status": SchemaStatus.DROPPED, "schema_name": None},
            )

        return await self._registry.get_by_session_id(session_id) or session

    # --- Provisioning ---

    def _launch_provisioning(self, session: PreviewSession) -> None:
        task = asyncio.create_task(
            self._provision_in_background(session),
            name=f"provision:{session.session_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _provision_in_background(self, session: PreviewSession) -> None:
        try:
            await self.begin_provisioning(session)
        except ConflictError as e:
            logger.info(f"Provisioning of {session.session_id} not started: {e.message}")
        except Exception as e:
            # Registry unavailable; the row keeps its status and is reclaimed by the sweep.
            log_exception(e, context="provisioning", session_id=session.session_id)

    async def wait_for_provisioning(self) -> None:
        """Wait until every background provisioning task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def begin_provisioning(self, session: PreviewSession) -> SchemaStatus:
        """
        NONE -> PROVISIONING -> READY | FAILED.

        Claiming the session and assigning its schema name is one conditional
        update, so a second call for the same session raises ConflictError
        instead of creating a second schema.
        """
        schema_name = self._new_schema_name()
        claimed = await self._registry.transition(
            session.session_id,
            {SchemaStatus.NONE},
            {"schema_status": SchemaStatus.PROVISIONING, "schema_name": schema_name},
        )
        if not claimed:
            raise ConflictError(
                "Preview session is not awaiting provisioning",
                details={"session_id": session.session_id},
            )

        started = time.perf_counter()
        with tracer.start_as_current_span("preview.provision") as span:
            span.set_attribute("preview.session_id", session.session_id)
            span.set_attribute("preview.schema_name", schema_name)
            try:
                await self._provisioner.provision_schema(schema_name)
                modules = await self._composer.seed(schema_name, session.selected_features)
            except Exception as e:
                span.record_exception(e)
                await self._fail_provisioning(session, schema_name, e)
                return SchemaStatus.FAILED
            finally:
                PROVISIONING_LATENCY.observe(time.perf_counter() - started)

        promoted = await self._registry.transition(
            session.session_id,
            {SchemaStatus.PROVISIONING},
            {"schema_status": SchemaStatus.READY},
        )
        if not promoted:
            # The stuck pass failed this session, or the hard-TTL pass deleted it,
            # while we were still working. Nobody else will drop this schema.
            logger.warning(
                f"Session {session.session_id} left PROVISIONING before {schema_name} was ready; dropping it"
            )
            PROVISIONING_OUTCOMES.labels("failed").inc()
            await self._drop_quietly(schema_name, context=f"late provisioning {session.session_id}")
            return SchemaStatus.FAILED

        PROVISIONING_OUTCOMES.labels("ready").inc()
        log_info(
            f"Preview session {session.session_id} ready",
            session_id=session.session_id,
            schema_name=schema_name,
            seeded_modules=modules,
        )
        return SchemaStatus.READY

    async def _fail_provisioning(self, session: PreviewSession, schema_name: str, error: Exception) -> None:
        PROVISIONING_OUTCOMES.labels("failed").inc()
        logger.error(f"Provisioning failed for {session.session_id} on {schema_name}: {error}")
        try:
            await self._registry.transition(
                session.session_id,
                {SchemaStatus.PROVISIONING},
                {
                    "schema_status": SchemaStatus.FAILED,
                    "schema_name": None,
                    "last_error": str(error)[:_LAST_ERROR_MAX],
                },
            )
        finally:
            await self._drop_quietly(schema_name, context=f"failed provisioning {session.session_id}")

    # --- Reclamation ---

    async def reclaim_expired(self) -> int:
        """
        Hard-TTL pass.

        Drops the schemas of expired READY/PROVISIONING sessions (settle-all),
        then deletes every expired row, including those whose drop failed.
        A failed drop leaves an orphan schema for out-of-band auditing; stale
        rows are never kept around waiting for a drop to succeed.
        """
        now = self._clock()
        candidates = await self._registry.find_expired(now, SCHEMA_BEARING_STATUSES)
        await self._drop_all([s for s in candidates if s.schema_name], pass_name="expired")

        expired = await self._registry.find_expired(now)
        deleted = await self._registry.delete_many([s.id for s in expired])
        SESSIONS_RECLAIMED.labels("expired").inc(deleted)
        if deleted:
            log_info(f"Hard-TTL pass deleted {deleted} preview sessions", pass_name="expired", count=deleted)
        return deleted

    async def reclaim_idle(self) -> int:
        """
        Idle pass: READY sessions not accessed within the idle threshold lose
        their schema and become DROPPED whether or not the drop succeeded.
        Rows are kept so visitor telemetry survives.
        """
        cutoff = self._clock() - self.idle_threshold
        idle = await self._registry.find_idle(cutoff)
        if not idle:
            return 0
        await self._drop_all([s for s in idle if s.schema_name], pass_name="idle")

        updated = await self._registry.update_many(
            [s.id for s in idle],
            {"schema_status": SchemaStatus.DROPPED, "schema_name": None},
            only_status=SchemaStatus.READY,
        )
        SESSIONS_RECLAIMED.labels("idle").inc(updated)
        if updated:
            log_info(f"Idle pass dropped {updated} preview schemas", pass_name="idle", count=updated)
        return updated

    async def fail_stuck_provisioning(self) -> int:
        """
        Force sessions PROVISIONING for longer than the stuck threshold to FAILED.

        No drop is attempted here: the provisioning task that created the
        schema may still be running, and it drops the schema itself when it
        finds the session no longer PROVISIONING.
        """
        cutoff = self._clock() - self.stuck_threshold
        stuck = await self._registry.find_stuck(cutoff)
        if not stuck:
            return 0
        for s in stuck:
            logger.warning(f"Session {s.session_id} stuck provisioning {s.schema_name}; marking FAILED")

        updated = await self._registry.update_many(
            [s.id for s in stuck],
            {
                "schema_status": SchemaStatus.FAILED,
                "schema_name": None,
                "last_error": "Provisioning timed out",
            },
            only_status=SchemaStatus.PROVISIONING,
        )
        SESSIONS_RECLAIMED.labels("stuck").inc(updated)
        return updated

    # --- Helpers ---

    async def _drop_all(self, sessions: List[PreviewSession], pass_name: str) -> List[Settled]:
        outcomes = await settle_all([s.schema_name for s in sessions], self._timed_drop)
        for outcome in outcomes:
            if not outcome.ok:
                DROP_FAILURES.labels(pass_name).inc()
                logger.warning(
                    f"{pass_name} pass: drop of {outcome.key} failed ({type(outcome.error).__name__}: {outcome.error}); "
                    f"schema may be orphaned"
                )
        return outcomes

    async def _drop_quietly(self, schema_name: str, context: str) -> None:
        try:
            await self._timed_drop(schema_name)
        except Exception as e:
            log_exception(e, context=f"drop after {context}", schema_name=schema_name)

    def _new_schema_name(self) -> str:
        return f"{self._settings.PREVIEW_SCHEMA_PREFIX}{uuid.uuid4().hex}"

    def _validate(self, tier: str, features: Iterable[str]) -> tuple[str, frozenset[str]]:
        tier = (tier or "").strip().lower()
        if not tier:
            raise ValidationError("tier is required")
        allowed_tiers = [t.lower() for t in self._settings.PREVIEW_TIERS]
        if tier not in allowed_tiers:
            raise ValidationError(
                f"Unknown tier '{tier}'",
                details={"allowed": allowed_tiers},
            )

        if isinstance(features, str):
            raise ValidationError("features must be a list of feature slugs")
        selected = frozenset(f.strip().lower() for f in features if f and f.strip())
        limit = self._settings.PREVIEW_MAX_FEATURES
        if len(selected) > limit:
            raise ValidationError(
                f"Too many features selected ({len(selected)} > {limit})",
                details={"max_features": limit},
            )
        invalid = sorted(f for f in selected if not _FEATURE_SLUG_RE.match(f))
        if invalid:
            raise ValidationError("Invalid feature slugs", details={"invalid": invalid})
        return tier, selected
