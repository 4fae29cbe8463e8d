# studio/routers/preview.py
# FastAPI router for visitor preview sessions

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from studio.dependencies import get_preview_service
from studio.middleware.error_handler import NotFoundError
from studio.schemas.common import StatusResponse
from studio.schemas.preview import PreviewActivity, PreviewSessionCreate, PreviewSessionOut
from studio.services.preview_service import PreviewService


router = APIRouter(tags=["Preview"])


@router.post("/preview/sessions", response_model=PreviewSessionOut, status_code=status.HTTP_201_CREATED)
async def create_preview_session(
    payload: PreviewSessionCreate,
    service: PreviewService = Depends(get_preview_service),
) -> PreviewSessionOut:
    """Create a session; the schema is provisioned in the background (poll the GET endpoint)."""
    session = await service.create_session(payload.tier, payload.selected_features, payload.template_id)
    return PreviewSessionOut.from_session(session)


@router.get("/preview/sessions/{session_id}", response_model=PreviewSessionOut)
async def get_preview_session(
    session_id: str,
    service: PreviewService = Depends(get_preview_service),
) -> PreviewSessionOut:
    session = await service.get_session(session_id)
    # Every lookup by the preview frontend counts as activity
    await service.record_access(session_id, page_views=0)
    return PreviewSessionOut.from_session(session)


@router.post("/preview/sessions/{session_id}/activity", response_model=StatusResponse)
async def record_preview_activity(
    session_id: str,
    payload: PreviewActivity,
    service: PreviewService = Depends(get_preview_service),
) -> StatusResponse:
    recorded = await service.record_access(session_id, page_views=payload.page_views, duration=payload.duration)
    if not recorded:
        raise NotFoundError("Preview session not found", details={"session_id": session_id})
    return StatusResponse(success=True, message="recorded")


@router.delete("/preview/sessions/{session_id}", response_model=PreviewSessionOut)
async def end_preview_session(
    session_id: str,
    service: PreviewService = Depends(get_preview_service),
) -> PreviewSessionOut:
    session = await service.end_session(session_id)
    return PreviewSessionOut.from_session(session)
