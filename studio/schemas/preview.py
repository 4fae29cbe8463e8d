from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from studio.models.preview_session import PreviewSession, SchemaStatus


class _CamelModel(BaseModel):
    # The studio frontend speaks camelCase; accept snake_case too.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _CamelRequest(_CamelModel):
    # A misspelled key must fail loudly rather than be dropped
    model_config = ConfigDict(extra="forbid")


class PreviewSessionCreate(_CamelRequest):
    tier: str
    # The studio client sends "features"; "selectedFeatures" mirrors the response body
    selected_features: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("features", "selectedFeatures", "selected_features"),
    )
    template_id: Optional[str] = None


class PreviewActivity(_CamelRequest):
    page_views: int = Field(default=1, ge=0)
    duration: int = Field(default=0, ge=0, description="Seconds spent since the last report")


class PreviewSessionOut(_CamelModel):
    session_id: str
    tier: str
    template_id: Optional[str] = None
    selected_features: List[str]
    schema_status: SchemaStatus
    last_error: Optional[str] = None
    page_views: int
    duration: int
    created_at: datetime
    last_accessed_at: datetime
    expires_at: datetime

    @classmethod
    def from_session(cls, session: PreviewSession) -> "PreviewSessionOut":
        # schema_name and the internal id stay server-side
        return cls(
            session_id=session.session_id,
            tier=session.tier,
            template_id=session.template_id,
            selected_features=sorted(session.selected_features),
            schema_status=session.schema_status,
            last_error=session.last_error,
            page_views=session.page_views,
            duration=session.duration,
            created_at=session.created_at,
            last_accessed_at=session.last_accessed_at,
            expires_at=session.expires_at,
        )
