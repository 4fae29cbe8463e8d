# studio/repositories/preview_session_repository.py
# Session registry: durable store of preview sessions and their lifecycle fields

from __future__ import annotations

from datetime import datetime
from typing import Any, Collection, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from studio.db.base import AsyncSessionFactory
from studio.models.preview_session import PreviewSession, SchemaStatus
from studio.models.preview_session_table import preview_sessions


class SessionRegistry(Protocol):
    """
    Query and mutation contract used by the lifecycle orchestrator.

    Status-changing calls are conditional on the row's current status and
    report whether they matched, so concurrent writers cannot clobber a
    transition made moments earlier.
    """

    async def insert(self, session: PreviewSession) -> None: ...

    async def get_by_session_id(self, session_id: str) -> Optional[PreviewSession]: ...

    async def transition(
        self,
        session_id: str,
        expected: Collection[SchemaStatus],
        values: Dict[str, Any],
    ) -> bool: ...

    async def touch(self, session_id: str, at: datetime, page_views: int = 0, duration: int = 0) -> bool: ...

    async def find_expired(
        self, before: datetime, statuses: Optional[Collection[SchemaStatus]] = None
    ) -> List[PreviewSession]: ...

    async def find_idle(self, before: datetime) -> List[PreviewSession]: ...

    async def find_stuck(self, before: datetime) -> List[PreviewSession]: ...

    async def update_many(
        self,
        ids: Iterable[str],
        values: Dict[str, Any],
        only_status: Optional[SchemaStatus] = None,
    ) -> int: ...

    async def delete_many(self, ids: Iterable[str]) -> int: ...


def _db_values(values: Dict[str, Any]) -> Dict[str, Any]:
    """Convert SchemaStatus members to their column value."""
    out = dict(values)
    status = out.get("schema_status")
    if isinstance(status, SchemaStatus):
        out["schema_status"] = status.value
    return out


class PreviewSessionRepository:
    """PostgreSQL-backed SessionRegistry over the `preview_sessions` table."""

    def __init__(self, engine: Optional[AsyncEngine] = None):
        if engine is None:
            self._session_factory = AsyncSessionFactory
        else:
            self._session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    def _session(self) -> AsyncSession:
        return self._session_factory()

    async def insert(self, session: PreviewSession) -> None:
        async with self._session() as db:
            await db.execute(insert(preview_sessions).values(**session.to_row()))
            await db.commit()

    async def get_by_session_id(self, session_id: str) -> Optional[PreviewSession]:
        async with self._session() as db:
            result = await db.execute(
                select(preview_sessions).where(preview_sessions.c.session_id == session_id)
            )
            row = result.mappings().first()
        return PreviewSession.from_row(row) if row else None

    async def transition(
        self,
        session_id: str,
        expected: Collection[SchemaStatus],
        values: Dict[str, Any],
    ) -> bool:
        """UPDATE ... WHERE session_id = :sid AND schema_status IN (:expected)."""
        stmt = (
            update(preview_sessions)
            .where(preview_sessions.c.session_id == session_id)
            .where(preview_sessions.c.schema_status.in_([s.value for s in expected]))
            .values(**_db_values(values))
            .returning(preview_sessions.c.id)
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            matched = result.first() is not None
            await db.commit()
        return matched

    async def touch(self, session_id: str, at: datetime, page_views: int = 0, duration: int = 0) -> bool:
        """Record visitor activity. Never touches schema_status."""
        stmt = (
            update(preview_sessions)
            .where(preview_sessions.c.session_id == session_id)
            .values(
                last_accessed_at=at,
                page_views=preview_sessions.c.page_views + page_views,
                duration=preview_sessions.c.duration + duration,
            )
            .returning(preview_sessions.c.id)
        )
        async with self._session() as db:
            result = await db.execute(stmt)
            matched = result.first() is not None
            await db.commit()
        return matched

    async def find_expired(
        self, before: datetime, statuses: Optional[Collection[SchemaStatus]] = None
    ) -> List[PreviewSession]:
        """Sessions with expires_at < before, optionally restricted to `statuses`."""
        stmt = select(preview_sessions).where(preview_sessions.c.expires_at < before)
        if statuses is not None:
            stmt = stmt.where(preview_sessions.c.schema_status.in_([s.value for s in statuses]))
        return await self._fetch(stmt)

    async def find_idle(self, before: datetime) -> List[PreviewSession]:
        """READY sessions whose last access is older than `before`."""
        stmt = (
            select(preview_sessions)
            .where(preview_sessions.c.last_accessed_at < before)
            .where(preview_sessions.c.schema_status == SchemaStatus.READY.value)
        )
        return await self._fetch(stmt)

    async def find_stuck(self, before: datetime) -> List[PreviewSession]:
        """PROVISIONING sessions created before `before`."""
        stmt = (
            select(preview_sessions)
            .where(preview_sessions.c.schema_status == SchemaStatus.PROVISIONING.value)
            .where(preview_sessions.c.created_at < before)
        )
        return await self._fetch(stmt)

    async def update_many(
        self,
        ids: Iterable[str],
        values: Dict[str, Any],
        only_status: Optional[SchemaStatus] = None,
    ) -> int:
        ids = list(ids)
        if not ids:
            return 0
        stmt = update(preview_sessions).where(preview_sessions.c.id.in_(ids))
        if only_status is not None:
            stmt = stmt.where(preview_sessions.c.schema_status == only_status.value)
        stmt = stmt.values(**_db_values(values)).returning(preview_sessions.c.id)
        async with self._session() as db:
            result = await db.execute(stmt)
            count = len(result.all())
            await db.commit()
        return count

    async def delete_many(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        stmt = delete(preview_sessions).where(preview_sessions.c.id.in_(ids)).returning(preview_sessions.c.id)
        async with self._session() as db:
            result = await db.execute(stmt)
            count = len(result.all())
            await db.commit()
        return count

    async def _fetch(self, stmt) -> List[PreviewSession]:
        async with self._session() as db:
            result = await db.execute(stmt)
            rows = result.mappings().all()
        return [PreviewSession.from_row(r) for r in rows]
