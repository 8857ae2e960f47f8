"""Server-side photo storage with optional progress linking."""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from hunt_sync.domain.uploads import ImageInput
from hunt_sync.errors import UploadError, ValidationError
from hunt_sync.services.progress import ProgressService

logger = logging.getLogger(__name__)

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/heic": "heic",
}


class ImageStorage(Protocol):
    """Object storage for captured photos."""

    def upload_signed(self, path: str, content: bytes, content_type: str) -> str:
        """Store bytes through a server-issued signed target; return a reference."""

    def upload_direct(self, path: str, content: bytes, content_type: str) -> str:
        """Store bytes with a plain upload; return a reference."""

    def delete(self, path: str) -> None:
        """Delete a stored object."""


class OrphanRepository(Protocol):
    """Records stored images that could not be linked or removed."""

    def mark_orphan(self, path: str, team_id: str, stop_id: str, reason: str) -> None:
        """Queue an object path for later cleanup."""


@dataclass(frozen=True)
class PhotoMetadata:
    """Descriptive fields sent with every upload."""

    stop_title: str
    session_id: str
    team_name: str | None = None
    location_name: str | None = None
    event_name: str | None = None


def slugify(title: str) -> str:
    """Build a storage-safe slug from a stop title."""
    slug = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip().strip("-")


def idempotency_key(content: bytes, session_id: str, stop_title: str) -> str:
    """Derive a key so re-sending the same photo targets the same object."""
    digest = hashlib.sha256()
    digest.update(content)
    digest.update(session_id.encode("utf-8"))
    digest.update(stop_title.encode("utf-8"))
    return digest.hexdigest()[:16]


@dataclass
class PhotoService:
    """Stores photos for the three upload endpoints."""

    storage: ImageStorage
    progress_service: ProgressService
    orphan_repository: OrphanRepository
    folder: str
    max_upload_bytes: int
    allow_large_uploads: bool = False
    orchestrated_max_bytes: int | None = None

    def store_signed(self, image: ImageInput, metadata: PhotoMetadata) -> str:
        """Store an image via a signed upload target."""
        self._validate(image, metadata, self._size_limit())
        path = self._object_path(image, metadata)
        try:
            reference = self.storage.upload_signed(
                path, image.content, image.mime_type
            )
        except Exception as exc:
            logger.exception("Signed upload failed for %s", path)
            raise UploadError("Signed upload failed") from exc
        logger.info(
            "Stored photo %s (signed) event=%s location=%s",
            path,
            metadata.event_name,
            metadata.location_name,
        )
        return reference

    def store_legacy(self, image: ImageInput, metadata: PhotoMetadata) -> str:
        """Store an image with a direct upload and no size limit."""
        self._validate(image, metadata, None)
        path = self._object_path(image, metadata)
        try:
            reference = self.storage.upload_direct(path, image.content, image.mime_type)
        except Exception as exc:
            logger.exception("Legacy upload failed for %s", path)
            raise UploadError("Legacy upload failed") from exc
        logger.info(
            "Stored photo %s (legacy) event=%s location=%s",
            path,
            metadata.event_name,
            metadata.location_name,
        )
        return reference

    def store_orchestrated(  # noqa: PLR0913
        self,
        image: ImageInput,
        metadata: PhotoMetadata,
        stop_id: str,
        team_id: str,
        org_id: str,
        hunt_id: str,
    ) -> str:
        """Store an image and mark the stop captured as one operation.

        If linking fails after the image is stored, the image is deleted; if
        that also fails, its path is queued for cleanup.
        """
        if not (stop_id and team_id and org_id and hunt_id):
            raise ValidationError("Team context required")
        limit = self.orchestrated_max_bytes or self._size_limit()
        self._validate(image, metadata, limit)
        path = self._object_path(image, metadata)
        try:
            reference = self.storage.upload_signed(
                path, image.content, image.mime_type
            )
        except Exception as exc:
            logger.exception("Orchestrated upload failed for %s", path)
            raise UploadError("Photo storage failed") from exc

        try:
            self.progress_service.mark_stop_captured(
                org_id,
                team_id,
                hunt_id,
                stop_id,
                reference,
                session_id=metadata.session_id,
            )
        except Exception as exc:
            self._compensate(path, team_id, stop_id, str(exc))
            raise UploadError("Failed to link photo to progress") from exc
        logger.info("Stored and linked photo %s for stop %s", path, stop_id)
        return reference

    def _compensate(self, path: str, team_id: str, stop_id: str, reason: str) -> None:
        logger.warning("Compensating upload %s: %s", path, reason)
        try:
            self.storage.delete(path)
        except Exception:
            logger.exception("Failed to delete %s, queueing for cleanup", path)
            self.orphan_repository.mark_orphan(path, team_id, stop_id, reason)

    def _size_limit(self) -> int | None:
        return None if self.allow_large_uploads else self.max_upload_bytes

    def _validate(
        self, image: ImageInput, metadata: PhotoMetadata, limit: int | None
    ) -> None:
        if not image.content:
            raise ValidationError("No photo data provided")
        if not image.mime_type.startswith("image/"):
            raise ValidationError("File must be an image")
        if not metadata.stop_title or not metadata.session_id:
            raise ValidationError("stopTitle and sessionId are required")
        if limit is not None and image.size > limit:
            max_mb = limit // (1024 * 1024)
            raise ValidationError(f"Image is too large (max {max_mb}MB)")

    def _object_path(self, image: ImageInput, metadata: PhotoMetadata) -> str:
        key = idempotency_key(image.content, metadata.session_id, metadata.stop_title)
        slug = slugify(metadata.stop_title) or "stop"
        extension = _EXTENSIONS.get(image.mime_type, "jpg")
        folder = self.folder
        if metadata.team_name and (team_slug := slugify(metadata.team_name)):
            folder = f"{folder}/{team_slug}"
        return f"{folder}/{slug}_{metadata.session_id}_{key}.{extension}"
