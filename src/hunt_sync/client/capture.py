"""Photo capture pipeline: validate, compress, upload, link to progress."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from hunt_sync.client.imaging import (
    compress_or_original,
    load_image_input,
    validate_image,
)
from hunt_sync.client.progress_store import ProgressStore
from hunt_sync.client.upload_strategies import UploadStrategy
from hunt_sync.domain.progress import ProgressSnapshot, StopState
from hunt_sync.domain.uploads import ImageInput, UploadContext
from hunt_sync.errors import CaptureInProgress, UploadError, ValidationError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class PhotoCapturePipeline:
    """Turns a captured image into a completed stop.

    Strategies are tried in order; a failing strategy only matters if every
    later one fails too. The stop is marked done in a single store update
    once a reference exists, so it is never done without its photo.
    """

    store: ProgressStore
    strategies: list[UploadStrategy]
    max_upload_bytes: int
    allow_large_uploads: bool = False
    compress_max_dimension: int = 1600
    compress_quality: int = 80
    clock: Callable[[], datetime] = field(default=_utcnow)
    uploading: set[str] = field(default_factory=set)

    def is_uploading(self, stop_id: str) -> bool:
        """Return whether a capture for ``stop_id`` is in flight."""
        return stop_id in self.uploading

    async def capture(
        self,
        stop_id: str,
        source: ImageInput | bytes | str,
        stop_title: str,
        context: UploadContext,
    ) -> str:
        """Upload a photo for a stop and mark the stop done.

        Raises ``ValidationError`` for bad input (including a duplicate
        capture for the same stop) and ``UploadError`` once every strategy
        has failed. On any error the stop keeps its previous state.
        """
        if self.is_uploading(stop_id):
            raise CaptureInProgress(f"A photo for {stop_title} is already uploading")
        if self.store.stop_ids and stop_id not in self.store.stop_ids:
            raise ValidationError(f"Unknown stop: {stop_id}")

        filename = f"stop_{stop_id}_{int(time.time() * 1000)}.jpg"
        image = load_image_input(source, filename)
        validate_image(image, self.max_upload_bytes, self.allow_large_uploads)

        self.uploading.add(stop_id)
        try:
            logger.info(
                "Capture started for stop %s (%s bytes, %s)",
                stop_id,
                image.size,
                image.mime_type,
            )
            reference = await self._upload(
                image, stop_id, stop_title, replace(context, stop_id=stop_id)
            )
            self._mark_done(stop_id, reference)
        finally:
            self.uploading.discard(stop_id)
        logger.info("Capture finished for stop %s", stop_id)
        return reference

    async def _upload(
        self,
        image: ImageInput,
        stop_id: str,
        stop_title: str,
        context: UploadContext,
    ) -> str:
        compressed: ImageInput | None = None
        failures: list[str] = []
        for strategy in self.strategies:
            if not strategy.is_available(context):
                logger.info("Skipping %s upload: context incomplete", strategy.name)
                continue
            payload = image
            if strategy.compress:
                if compressed is None:
                    compressed = compress_or_original(
                        image, self.compress_max_dimension, self.compress_quality
                    )
                payload = compressed
            try:
                reference = await strategy.upload(payload, stop_id, stop_title, context)
            except UploadError as exc:
                logger.warning(
                    "%s upload failed for stop %s: %s", strategy.name, stop_id, exc
                )
                failures.append(f"{strategy.name}: {exc.message}")
                continue
            logger.info("Stored photo for stop %s via %s", stop_id, strategy.name)
            return reference
        raise UploadError(f"Failed to upload photo for {stop_title}", failures=failures)

    def _mark_done(self, stop_id: str, reference: str) -> None:
        completed_at = self.clock()

        def complete(snapshot: ProgressSnapshot) -> ProgressSnapshot:
            previous = snapshot.get(stop_id) or StopState()
            done = StopState(
                done=True,
                photo_reference=reference,
                completed_at=completed_at,
                revealed_hints=previous.revealed_hints,
                notes=previous.notes,
            )
            return {**snapshot, stop_id: done}

        self.store.update(complete)
