"""Device session wiring: lock, progress store and capture pipeline."""

import logging
from dataclasses import dataclass, field

from hunt_sync.client.api_client import HttpxHuntApiClient, HuntApiClient
from hunt_sync.client.capture import PhotoCapturePipeline
from hunt_sync.client.progress_store import ErrorHandler, ProgressStore
from hunt_sync.client.upload_strategies import default_strategies
from hunt_sync.config import ClientSettings, normalize_team_code
from hunt_sync.domain.locks import LockGrant
from hunt_sync.domain.progress import TeamScope
from hunt_sync.domain.uploads import UploadContext
from hunt_sync.errors import HuntError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class HuntSession:
    """One admitted device playing for one team."""

    api: HuntApiClient
    settings: ClientSettings
    session_id: str
    on_error: ErrorHandler | None = None
    grant: LockGrant | None = field(default=None, init=False)
    store: ProgressStore | None = field(default=None, init=False)
    pipeline: PhotoCapturePipeline | None = field(default=None, init=False)

    @classmethod
    def create(
        cls,
        session_id: str,
        settings: ClientSettings | None = None,
        on_error: ErrorHandler | None = None,
    ) -> "HuntSession":
        settings = settings or ClientSettings()
        api = HttpxHuntApiClient.create(
            settings.api_base_url, timeout=settings.request_timeout_seconds
        )
        return cls(api=api, settings=settings, session_id=session_id, on_error=on_error)

    async def login(
        self, team_code: str, device_fingerprint: str | None = None
    ) -> ProgressStore:
        """Claim the team lock, seed progress and start revalidation polling."""
        code = normalize_team_code(team_code)
        if code is None:
            raise ValidationError("Team code is required")
        fingerprint = device_fingerprint or self.settings.device_fingerprint
        grant = await self.api.acquire_lock(code, fingerprint)
        scope = TeamScope(
            org_id=grant.org_id, team_id=grant.team_identifier, hunt_id=grant.hunt_id
        )
        try:
            active = await self.api.get_active(
                scope.org_id, scope.team_id, scope.hunt_id
            )
        except HuntError:
            logger.warning(
                "Loading hunt data failed for team %s; releasing lock", grant.team_name
            )
            try:
                await self.api.release_lock(grant.lock_token)
            except HuntError as exc:
                logger.warning("Lock release failed: %s", exc)
            raise
        store = ProgressStore(
            self.api,
            scope,
            session_id=self.session_id,
            debounce_seconds=self.settings.debounce_seconds,
            on_error=self.on_error,
        )
        store.seed_from_active(active)
        store.start_polling(self.settings.revalidate_interval_seconds)
        self.grant = grant
        self.store = store
        self.pipeline = PhotoCapturePipeline(
            store=store,
            strategies=default_strategies(self.api),
            max_upload_bytes=self.settings.max_upload_bytes,
            allow_large_uploads=self.settings.allow_large_uploads,
            compress_max_dimension=self.settings.compress_max_dimension,
            compress_quality=self.settings.compress_quality,
        )
        logger.info("Session %s admitted for team %s", self.session_id, grant.team_name)
        return store

    def upload_context(
        self, event_name: str | None = None, location_name: str | None = None
    ) -> UploadContext:
        """Build the context for a capture in this session."""
        grant = self._require_grant()
        return UploadContext(
            session_id=self.session_id,
            team_identifier=grant.team_identifier,
            org_id=grant.org_id,
            hunt_id=grant.hunt_id,
            team_name=grant.team_name,
            event_name=event_name,
            location_name=location_name,
        )

    async def capture(
        self,
        stop_id: str,
        source: bytes | str,
        stop_title: str,
        location_name: str | None = None,
    ) -> str:
        """Capture a photo for a stop in this session."""
        if self.pipeline is None:
            raise ValidationError("Not logged in")
        context = self.upload_context(location_name=location_name)
        return await self.pipeline.capture(stop_id, source, stop_title, context)

    async def logout(self) -> None:
        """Flush pending progress, stop polling and release the lock."""
        if self.store is not None:
            await self.store.flush()
            await self.store.close()
        if self.grant is not None:
            await self.api.release_lock(self.grant.lock_token)
            logger.info(
                "Session %s released team %s", self.session_id, self.grant.team_name
            )
        self.grant = None
        self.store = None
        self.pipeline = None

    def _require_grant(self) -> LockGrant:
        if self.grant is None:
            raise ValidationError("Not logged in")
        return self.grant
