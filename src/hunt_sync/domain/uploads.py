"""Models for photo uploads."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class UploadContext:
    """Per-call context for a photo capture.

    ``session_id`` is recorded for audit only and never identifies the team.
    ``stop_id`` is filled in by the capture pipeline for each capture.
    """

    session_id: str
    team_identifier: str | None = None
    org_id: str | None = None
    hunt_id: str | None = None
    team_name: str | None = None
    event_name: str | None = None
    location_name: str | None = None
    stop_id: str | None = None

    def has_full_context(self) -> bool:
        """Return whether team, org and hunt ids are all known."""
        return bool(self.team_identifier and self.org_id and self.hunt_id)


@dataclass(frozen=True)
class ImageInput:
    """Raw image bytes with their declared type."""

    content: bytes
    mime_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.content)


class UploadReceipt(BaseModel):
    """Server response for any upload endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    photo_reference: str = Field(alias="photoReference", min_length=1)
