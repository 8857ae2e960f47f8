"""Team lock endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Header, Request

from hunt_sync.api.schemas import LockAcquireRequest, LockAcquireResponse
from hunt_sync.errors import ValidationError
from hunt_sync.services.locks import device_hint

if TYPE_CHECKING:
    from hunt_sync.containers import AppContainer

router = APIRouter(prefix="/lock", tags=["lock"])


@router.post("/acquire", response_model=LockAcquireResponse)
async def acquire_lock(
    body: LockAcquireRequest,
    request: Request,
    user_agent: str | None = Header(default=None),
    x_forwarded_for: str | None = Header(default=None),
) -> LockAcquireResponse:
    """Admit the calling device for the team behind the code."""
    container: AppContainer = request.app.state.container
    fingerprint = body.device_fingerprint
    if not fingerprint:
        client_ip = (x_forwarded_for or "").split(",")[0].strip()
        if not client_ip and request.client:
            client_ip = request.client.host
        fingerprint = device_hint(
            user_agent or "",
            client_ip or "unknown",
            container.settings.device_hint_seed,
        )
    grant = container.lock_service.acquire_lock(body.team_code, fingerprint)
    return LockAcquireResponse(
        team_identifier=grant.team_identifier,
        team_name=grant.team_name,
        org_id=grant.org_id,
        hunt_id=grant.hunt_id,
        lock_token=grant.lock_token,
        expires_at=grant.expires_at,
    )


@router.delete("")
async def release_lock(
    request: Request, x_team_lock: str | None = Header(default=None)
) -> dict[str, str]:
    """Release the caller's lock on logout."""
    container: AppContainer = request.app.state.container
    if not x_team_lock:
        raise ValidationError("X-Team-Lock header is required")
    container.lock_service.release_lock(x_team_lock)
    return {"status": "released"}
