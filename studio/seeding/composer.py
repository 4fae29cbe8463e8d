# studio/seeding/composer.py
# Populates a freshly provisioned preview schema with demo data

from __future__ import annotations

import logging
from typing import AsyncContextManager, Callable, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncConnection

from studio.db.base import schema_connection
from studio.seeding.registry import SeedRegistry, default_registry
from studio.services.errors import SeedingError
from studio.utils.concurrency import settle_all

logger = logging.getLogger(__name__)

# schema name -> transactional connection scoped to that schema
ConnectionFactory = Callable[[str], AsyncContextManager[AsyncConnection]]


class SeedingComposer:
    """
    Core seeder first, then every enabled module seeder concurrently.

    - Core failure aborts before any module seeder starts.
    - Module seeders each get their own connection on the same schema, so
      they commit independently and never share a connection across tasks.
    - All module seeders settle before the outcome is reported; any failure
      raises SeedingError naming every failed module.
    """

    def __init__(
        self,
        registry: Optional[SeedRegistry] = None,
        connection_factory: ConnectionFactory = schema_connection,
    ):
        self._registry = registry or default_registry()
        self._connect = connection_factory

    async def seed(self, schema_name: str, enabled_features: Iterable[str]) -> List[str]:
        """Seed `schema_name`; returns the module slugs that ran."""
        try:
            async with self._connect(schema_name) as conn:
                await self._registry.core(conn)
        except Exception as e:
            logger.error(f"Core seed failed for {schema_name}: {e}")
            raise SeedingError({"core": e}) from e

        slugs = self._registry.modules_for(enabled_features)
        if not slugs:
            return []

        async def _run(slug: str) -> None:
            async with self._connect(schema_name) as conn:
                await self._registry.get(slug)(conn)

        outcomes = await settle_all(slugs, _run)
        failures = {o.key: o.error for o in outcomes if not o.ok}
        if failures:
            for slug, err in failures.items():
                logger.error(f"Module seed '{slug}' failed for {schema_name}: {err!r}")
            raise SeedingError(failures)

        logger.info(f"Seeded {schema_name}: core + {', '.join(slugs)}")
        return slugs
