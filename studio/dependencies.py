# studio/dependencies.py
# Process-wide wiring of the preview lifecycle components

from functools import lru_cache

from studio.config import get_settings
from studio.provisioning.schema_provisioner import PostgresSchemaProvisioner
from studio.repositories.preview_session_repository import PreviewSessionRepository
from studio.seeding.composer import SeedingComposer
from studio.services.preview_service import PreviewService


@lru_cache
def get_preview_service() -> PreviewService:
    """Singleton: background provisioning tasks are tracked per instance."""
    return PreviewService(
        registry=PreviewSessionRepository(),
        provisioner=PostgresSchemaProvisioner(),
        composer=SeedingComposer(),
        settings=get_settings(),
    )