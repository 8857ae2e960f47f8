"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from hunt_sync.adapters.supabase_lock_repository import SupabaseLockRepository
from hunt_sync.adapters.supabase_orphan_repository import SupabaseOrphanRepository
from hunt_sync.adapters.supabase_photo_storage import SupabasePhotoStorage
from hunt_sync.adapters.supabase_progress_repository import (
    SupabaseProgressRepository,
)
from hunt_sync.adapters.supabase_team_repository import SupabaseTeamRepository
from hunt_sync.config import Settings
from hunt_sync.services.locks import LockService
from hunt_sync.services.photos import PhotoService
from hunt_sync.services.progress import ProgressService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    lock_service: LockService
    progress_service: ProgressService
    photo_service: PhotoService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    lock_service = LockService(
        team_repository=SupabaseTeamRepository(supabase_client),
        lock_repository=SupabaseLockRepository(supabase_client),
        ttl_seconds=resolved_settings.lock_ttl_seconds,
    )
    progress_service = ProgressService(SupabaseProgressRepository(supabase_client))
    photo_service = PhotoService(
        storage=SupabasePhotoStorage(supabase_client, resolved_settings.photo_bucket),
        progress_service=progress_service,
        orphan_repository=SupabaseOrphanRepository(supabase_client),
        folder=resolved_settings.upload_folder,
        max_upload_bytes=resolved_settings.max_upload_bytes,
        allow_large_uploads=resolved_settings.allow_large_uploads,
        orchestrated_max_bytes=resolved_settings.orchestrated_max_bytes,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        lock_service=lock_service,
        progress_service=progress_service,
        photo_service=photo_service,
        close_resources=close_resources,
    )
