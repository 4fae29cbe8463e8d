# studio/seeding/registry.py
# Maps feature-flag prefixes ("lms", "booking", ...) to demo-data seeders

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Iterable, List, Mapping

from sqlalchemy.ext.asyncio import AsyncConnection

from studio.seeding.seeds.booking import seed_booking
from studio.seeding.seeds.core import seed_core
from studio.seeding.seeds.ecommerce import seed_ecommerce
from studio.seeding.seeds.events import seed_events
from studio.seeding.seeds.helpdesk import seed_helpdesk
from studio.seeding.seeds.invoicing import seed_invoicing
from studio.seeding.seeds.lms import seed_lms
from studio.seeding.seeds.tasks import seed_tasks

SeedFn = Callable[[AsyncConnection], Awaitable[None]]


def feature_prefix(feature: str) -> str:
    """'lms.courses' -> 'lms'; a bare slug is its own prefix."""
    return feature.split(".", 1)[0].strip().lower()


class SeedRegistry:
    """Core seeder plus the module seeders keyed by feature prefix."""

    def __init__(self, core: SeedFn, modules: Mapping[str, SeedFn]):
        self.core = core
        self._modules: Dict[str, SeedFn] = dict(modules)

    @property
    def module_slugs(self) -> List[str]:
        return list(self._modules)

    def get(self, slug: str) -> SeedFn:
        return self._modules[slug]

    def modules_for(self, features: Iterable[str]) -> List[str]:
        """Registered module slugs whose prefix matches at least one enabled feature."""
        prefixes = {feature_prefix(f) for f in features}
        return [slug for slug in self._modules if slug in prefixes]


def default_registry() -> SeedRegistry:
    return SeedRegistry(
        core=seed_core,
        modules={
            "lms": seed_lms,
            "booking": seed_booking,
            "invoicing": seed_invoicing,
            "tasks": seed_tasks,
            "events": seed_events,
            "ecommerce": seed_ecommerce,
            "helpdesk": seed_helpdesk,
        },
    )
