# studio/provisioning/schema_provisioner.py
# Creates and drops the per-session PostgreSQL schemas backing previews

from __future__ import annotations

import logging
import re
from typing import Optional, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import CreateSchema, DropSchema

from studio.db.base import async_engine
from studio.models.demo_tables import demo_metadata
from studio.services.errors import ProvisioningError

logger = logging.getLogger(__name__)

# Lowercase identifier that fits PostgreSQL's 63-byte NAMEDATALEN limit.
_SCHEMA_NAME_RE = re.compile(r"^[a-z][a-z0-9_]{0,62}$")


class SchemaProvisioner(Protocol):
    """Physical schema lifecycle. Both calls must tolerate an absent schema on drop."""

    async def provision_schema(self, name: str) -> None: ...

    async def drop_schema(self, name: str) -> None: ...


def validate_schema_name(name: str) -> str:
    if not _SCHEMA_NAME_RE.match(name or ""):
        raise ValueError(f"Invalid schema name: {name!r}")
    return name


class PostgresSchemaProvisioner:
    """Schema provisioner backed by the application's async engine."""

    def __init__(self, engine: Optional[AsyncEngine] = None):
        self._engine = engine or async_engine

    async def provision_schema(self, name: str) -> None:
        """Create the schema and every demo table inside it, in one transaction."""
        validate_schema_name(name)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(CreateSchema(name))
                await conn.execution_options(schema_translate_map={None: name})
                await conn.run_sync(lambda sync_conn: demo_metadata.create_all(sync_conn, checkfirst=False))
        except SQLAlchemyError as e:
            raise ProvisioningError(name, str(getattr(e, "orig", None) or e)) from e
        logger.info(f"Provisioned schema {name} with {len(demo_metadata.tables)} tables")

    async def drop_schema(self, name: str) -> None:
        """Drop the schema and everything in it. No-op when it does not exist."""
        validate_schema_name(name)
        async with self._engine.begin() as conn:
            await conn.execute(DropSchema(name, cascade=True, if_exists=True))
        logger.info(f"Dropped schema {name}")

    async def schema_exists(self, name: str) -> bool:
        async with self._engine.connect() as conn:
            result = await conn.execute(
                text("SELECT 1 FROM information_schema.schemata WHERE schema_name = :name"),
                {"name": name},
            )
            return result.scalar() is not None
