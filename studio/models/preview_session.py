# studio/models/preview_session.py
# Domain record and lifecycle states for preview sessions

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional


class SchemaStatus(str, Enum):
    """Lifecycle of the database schema backing a preview session."""
    NONE = "NONE"                  # row created, provisioning not started
    PROVISIONING = "PROVISIONING"  # schema being created and seeded
    READY = "READY"                # schema usable by the preview frontend
    FAILED = "FAILED"              # provisioning failed or stalled; terminal
    DROPPED = "DROPPED"            # schema reclaimed, row kept for telemetry


# States in which the session owns a physical schema.
SCHEMA_BEARING_STATUSES: frozenset[SchemaStatus] = frozenset(
    {SchemaStatus.PROVISIONING, SchemaStatus.READY}
)


@dataclass
class PreviewSession:
    id: str
    session_id: str
    tier: str
    selected_features: frozenset[str]
    schema_status: SchemaStatus
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime
    template_id: Optional[str] = None
    schema_name: Optional[str] = None
    last_error: Optional[str] = None
    page_views: int = 0
    duration: int = 0

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "PreviewSession":
        """Build a record from a `preview_sessions` mapping row."""
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            tier=row["tier"],
            template_id=row.get("template_id"),
            selected_features=frozenset(row.get("selected_features") or ()),
            schema_name=row.get("schema_name"),
            schema_status=SchemaStatus(row["schema_status"]),
            last_error=row.get("last_error"),
            page_views=row.get("page_views") or 0,
            duration=row.get("duration") or 0,
            created_at=row["created_at"],
            last_accessed_at=row["last_accessed_at"],
            expires_at=row["expires_at"],
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "tier": self.tier,
            "template_id": self.template_id,
            "selected_features": sorted(self.selected_features),
            "schema_name": self.schema_name,
            "schema_status": self.schema_status.value,
            "last_error": self.last_error,
            "page_views": self.page_views,
            "duration": self.duration,
            "created_at": self.created_at,
            "last_accessed_at": self.last_accessed_at,
            "expires_at": self.expires_at,
        }

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now
