"""Pydantic request and response bodies for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hunt_sync.domain.progress import ProgressSnapshot


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LockAcquireRequest(_CamelModel):
    """Body of ``POST /lock/acquire``."""

    team_code: str = Field(min_length=1)
    device_fingerprint: str | None = None


class LockAcquireResponse(_CamelModel):
    """Successful lock acquisition."""

    team_identifier: str
    team_name: str
    org_id: str
    hunt_id: str
    lock_token: str
    expires_at: datetime


class ProgressSaveRequest(_CamelModel):
    """Body of ``PUT /progress/...``."""

    snapshot: ProgressSnapshot
    session_id: str | None = None


class ProgressSaveResponse(_CamelModel):
    """Snapshot as stored by the server."""

    snapshot: ProgressSnapshot


class UploadResponse(_CamelModel):
    """Reference to a stored photo."""

    photo_reference: str
