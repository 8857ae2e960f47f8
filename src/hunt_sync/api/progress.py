"""Progress snapshot endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request

from hunt_sync.api.schemas import ProgressSaveRequest, ProgressSaveResponse
from hunt_sync.domain.progress import ProgressSnapshot

if TYPE_CHECKING:
    from hunt_sync.containers import AppContainer

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/{org_id}/{team_id}/{hunt_id}", response_model=ProgressSnapshot)
async def get_progress(
    org_id: str, team_id: str, hunt_id: str, request: Request
) -> ProgressSnapshot:
    """Return the team's current snapshot (possibly empty)."""
    container: AppContainer = request.app.state.container
    return container.progress_service.get_snapshot(org_id, team_id, hunt_id)


@router.put("/{org_id}/{team_id}/{hunt_id}", response_model=ProgressSaveResponse)
async def save_progress(
    org_id: str,
    team_id: str,
    hunt_id: str,
    body: ProgressSaveRequest,
    request: Request,
) -> ProgressSaveResponse:
    """Overwrite the team's snapshot with the one sent."""
    container: AppContainer = request.app.state.container
    stored = container.progress_service.save_snapshot(
        org_id, team_id, hunt_id, body.snapshot, session_id=body.session_id
    )
    return ProgressSaveResponse(snapshot=stored)
