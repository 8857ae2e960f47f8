"""Photo upload endpoints: orchestrated, signed and legacy."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, File, Form, Header, Request, UploadFile

from hunt_sync.api.schemas import UploadResponse
from hunt_sync.domain.uploads import ImageInput
from hunt_sync.errors import ValidationError
from hunt_sync.services.photos import PhotoMetadata

if TYPE_CHECKING:
    from hunt_sync.containers import AppContainer

router = APIRouter(prefix="/upload", tags=["upload"])


async def _read_image(photo: UploadFile) -> ImageInput:
    content = await photo.read()
    return ImageInput(
        content=content,
        mime_type=photo.content_type or "application/octet-stream",
        filename=photo.filename or "photo",
    )


@router.post("/orchestrated", response_model=UploadResponse)
async def upload_orchestrated(  # noqa: PLR0913
    request: Request,
    photo: UploadFile = File(...),
    stop_id: str = Form(alias="stopId"),
    stop_title: str = Form(alias="stopTitle"),
    session_id: str = Form(alias="sessionId"),
    org_id: str = Form(alias="orgId"),
    hunt_id: str = Form(alias="huntId"),
    team_id: str | None = Form(default=None, alias="teamId"),
    team_name: str | None = Form(default=None, alias="teamName"),
    x_team_lock: str | None = Header(default=None),
) -> UploadResponse:
    """Store a photo and mark its stop captured in one operation."""
    container: AppContainer = request.app.state.container
    if not team_id:
        lock = container.lock_service.resolve_token(x_team_lock)
        if lock is None:
            raise ValidationError("Team context required")
        team_id = lock.team_identifier
    image = await _read_image(photo)
    reference = container.photo_service.store_orchestrated(
        image,
        PhotoMetadata(
            stop_title=stop_title, session_id=session_id, team_name=team_name
        ),
        stop_id=stop_id,
        team_id=team_id,
        org_id=org_id,
        hunt_id=hunt_id,
    )
    return UploadResponse(photo_reference=reference)


@router.post("/signed", response_model=UploadResponse)
async def upload_signed(  # noqa: PLR0913
    request: Request,
    photo: UploadFile = File(...),
    stop_title: str = Form(alias="stopTitle"),
    session_id: str = Form(alias="sessionId"),
    team_name: str | None = Form(default=None, alias="teamName"),
    location_name: str | None = Form(default=None, alias="locationName"),
    event_name: str | None = Form(default=None, alias="eventName"),
) -> UploadResponse:
    """Store a photo through a signed upload target."""
    container: AppContainer = request.app.state.container
    image = await _read_image(photo)
    reference = container.photo_service.store_signed(
        image,
        PhotoMetadata(
            stop_title=stop_title,
            session_id=session_id,
            team_name=team_name,
            location_name=location_name,
            event_name=event_name,
        ),
    )
    return UploadResponse(photo_reference=reference)


@router.post("/legacy", response_model=UploadResponse)
async def upload_legacy(  # noqa: PLR0913
    request: Request,
    photo: UploadFile = File(...),
    stop_title: str = Form(alias="stopTitle"),
    session_id: str = Form(alias="sessionId"),
    team_name: str | None = Form(default=None, alias="teamName"),
    location_name: str | None = Form(default=None, alias="locationName"),
    event_name: str | None = Form(default=None, alias="eventName"),
) -> UploadResponse:
    """Store a photo with a plain upload and no size limit."""
    container: AppContainer = request.app.state.container
    image = await _read_image(photo)
    reference = container.photo_service.store_legacy(
        image,
        PhotoMetadata(
            stop_title=stop_title,
            session_id=session_id,
            team_name=team_name,
            location_name=location_name,
            event_name=event_name,
        ),
    )
    return UploadResponse(photo_reference=reference)
