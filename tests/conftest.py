"""Shared test fixtures."""

import io
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
from PIL import Image

from hunt_sync.client.api_client import HuntApiClient
from hunt_sync.config import Settings
from hunt_sync.containers import AppContainer
from hunt_sync.domain.active import ActiveData
from hunt_sync.domain.locks import LockGrant, TeamLock, TeamRecord
from hunt_sync.domain.progress import ProgressSnapshot, parse_snapshot
from hunt_sync.domain.uploads import ImageInput
from hunt_sync.errors import (
    HuntError,
    PersistenceError,
    ServerError,
    UploadError,
)
from hunt_sync.services.locks import LockRepository, LockService, TeamRepository
from hunt_sync.services.photos import ImageStorage, OrphanRepository, PhotoService
from hunt_sync.services.progress import ProgressRepository, ProgressService

T0 = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


@dataclass
class MutableClock:
    """Clock that tests move forward by hand."""

    now: datetime = T0

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_jpeg(width: int = 64, height: int = 48) -> bytes:
    """Return a small real JPEG."""
    output = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 40, 40)).save(output, format="JPEG")
    return output.getvalue()


@dataclass
class InMemoryTeamRepository(TeamRepository):
    """In-memory team code lookup for tests."""

    teams: dict[str, TeamRecord] = field(
        default_factory=lambda: {
            "T1CODE": TeamRecord(
                team_identifier="t1",
                team_name="Team One",
                org_id="org-1",
                hunt_id="hunt-1",
            ),
            "RETIRED": TeamRecord(
                team_identifier="t9",
                team_name="Retired",
                org_id="org-1",
                hunt_id="hunt-1",
                is_active=False,
            ),
        }
    )

    def get_team_by_code(self, code: str) -> TeamRecord | None:
        return self.teams.get(code)


@dataclass
class InMemoryLockRepository(LockRepository):
    """In-memory lock repository with conditional writes."""

    locks: dict[str, TeamLock] = field(default_factory=dict)
    # Written just before the next insert/replace to simulate a lost race.
    intruder: TeamLock | None = None

    def get_lock(self, team_identifier: str) -> TeamLock | None:
        return self.locks.get(team_identifier)

    def get_lock_by_token(self, lock_token: str) -> TeamLock | None:
        for lock in self.locks.values():
            if lock.lock_token == lock_token:
                return lock
        return None

    def insert_lock(self, lock: TeamLock) -> bool:
        self._let_intruder_in()
        if lock.team_identifier in self.locks:
            return False
        self.locks[lock.team_identifier] = lock
        return True

    def replace_lock(self, lock: TeamLock, expected_token: str) -> bool:
        self._let_intruder_in()
        current = self.locks.get(lock.team_identifier)
        if current is None or current.lock_token != expected_token:
            return False
        self.locks[lock.team_identifier] = lock
        return True

    def delete_lock(self, lock_token: str) -> None:
        self.locks = {
            team: lock
            for team, lock in self.locks.items()
            if lock.lock_token != lock_token
        }

    def delete_expired(self, now: datetime) -> int:
        expired = [team for team, lock in self.locks.items() if lock.is_expired(now)]
        for team in expired:
            del self.locks[team]
        return len(expired)

    def _let_intruder_in(self) -> None:
        if self.intruder is not None:
            self.locks[self.intruder.team_identifier] = self.intruder
            self.intruder = None


@dataclass
class InMemoryProgressRepository(ProgressRepository):
    """In-memory snapshot storage for tests."""

    rows: dict[tuple[str, str, str], ProgressSnapshot] = field(default_factory=dict)
    saves: list[dict[str, object]] = field(default_factory=list)
    fail_saves: bool = False

    def get_snapshot(
        self, org_id: str, team_id: str, hunt_id: str
    ) -> ProgressSnapshot | None:
        return self.rows.get((org_id, team_id, hunt_id))

    def save_snapshot(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot,
        session_id: str | None,
        saved_at: datetime,
    ) -> None:
        if self.fail_saves:
            raise RuntimeError("database unavailable")
        self.rows[(org_id, team_id, hunt_id)] = dict(snapshot)
        self.saves.append(
            {"team_id": team_id, "session_id": session_id, "saved_at": saved_at}
        )


@dataclass
class InMemoryImageStorage(ImageStorage):
    """In-memory object storage for tests."""

    objects: dict[str, bytes] = field(default_factory=dict)
    deleted: list[str] = field(default_factory=list)
    calls: list[tuple[str, str]] = field(default_factory=list)
    fail_uploads: bool = False
    fail_deletes: bool = False

    def upload_signed(self, path: str, content: bytes, content_type: str) -> str:
        return self._store("signed", path, content)

    def upload_direct(self, path: str, content: bytes, content_type: str) -> str:
        return self._store("direct", path, content)

    def delete(self, path: str) -> None:
        if self.fail_deletes:
            raise RuntimeError("storage unavailable")
        self.objects.pop(path, None)
        self.deleted.append(path)

    def _store(self, method: str, path: str, content: bytes) -> str:
        self.calls.append((method, path))
        if self.fail_uploads:
            raise RuntimeError("storage unavailable")
        self.objects[path] = content
        return f"https://storage.test/{path}"


@dataclass
class InMemoryOrphanRepository(OrphanRepository):
    """Collects orphaned photo paths."""

    orphans: list[dict[str, str]] = field(default_factory=list)

    def mark_orphan(self, path: str, team_id: str, stop_id: str, reason: str) -> None:
        self.orphans.append(
            {"path": path, "team_id": team_id, "stop_id": stop_id, "reason": reason}
        )


@dataclass
class FakeHuntApiClient(HuntApiClient):
    """Fake API client backed by an in-memory snapshot."""

    server_snapshot: ProgressSnapshot = field(default_factory=dict)
    active: ActiveData = field(default_factory=ActiveData)
    puts: list[ProgressSnapshot] = field(default_factory=list)
    uploads: list[tuple[str, ImageInput, dict[str, str]]] = field(
        default_factory=list
    )
    failing_endpoints: set[str] = field(default_factory=set)
    fail_puts: int = 0
    fail_gets: bool = False
    released: list[str] = field(default_factory=list)
    get_calls: int = 0
    fingerprints: list[str | None] = field(default_factory=list)
    fail_active: bool = False

    async def acquire_lock(
        self, team_code: str, device_fingerprint: str | None
    ) -> LockGrant:
        self.fingerprints.append(device_fingerprint)
        return LockGrant(
            team_identifier="t1",
            team_name="Team One",
            org_id="org-1",
            hunt_id="hunt-1",
            lock_token="token-1",
            expires_at=T0 + timedelta(hours=24),
        )

    async def release_lock(self, lock_token: str) -> None:
        self.released.append(lock_token)

    async def get_active(self, org_id: str, team_id: str, hunt_id: str) -> ActiveData:
        if self.fail_active:
            raise ServerError("Failed to load hunt data")
        return self.active

    async def get_progress(
        self, org_id: str, team_id: str, hunt_id: str
    ) -> ProgressSnapshot:
        self.get_calls += 1
        if self.fail_gets:
            raise HuntError("offline")
        return dict(self.server_snapshot)

    async def put_progress(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot,
        session_id: str | None,
    ) -> ProgressSnapshot:
        if self.fail_puts:
            self.fail_puts -= 1
            raise PersistenceError("Failed to update progress")
        stored = parse_snapshot(dict(snapshot))
        self.puts.append(stored)
        self.server_snapshot = stored
        return stored

    async def upload(
        self, endpoint: str, image: ImageInput, fields: dict[str, str]
    ) -> str:
        self.uploads.append((endpoint, image, fields))
        if endpoint in self.failing_endpoints:
            raise UploadError(f"{endpoint} upload failed")
        return f"https://storage.test/{endpoint}/{fields['stopTitle']}.jpg"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        device_hint_seed="test-seed",
    )


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def lock_repository() -> InMemoryLockRepository:
    return InMemoryLockRepository()


@pytest.fixture
def progress_repository() -> InMemoryProgressRepository:
    return InMemoryProgressRepository()


@pytest.fixture
def image_storage() -> InMemoryImageStorage:
    return InMemoryImageStorage()


@pytest.fixture
def orphan_repository() -> InMemoryOrphanRepository:
    return InMemoryOrphanRepository()


@pytest.fixture
def lock_service(
    lock_repository: InMemoryLockRepository, clock: MutableClock
) -> LockService:
    return LockService(
        team_repository=InMemoryTeamRepository(),
        lock_repository=lock_repository,
        ttl_seconds=86400,
        clock=clock,
    )


@pytest.fixture
def progress_service(
    progress_repository: InMemoryProgressRepository, clock: MutableClock
) -> ProgressService:
    return ProgressService(progress_repository, clock=clock)


@pytest.fixture
def photo_service(
    image_storage: InMemoryImageStorage,
    progress_service: ProgressService,
    orphan_repository: InMemoryOrphanRepository,
    settings: Settings,
) -> PhotoService:
    return PhotoService(
        storage=image_storage,
        progress_service=progress_service,
        orphan_repository=orphan_repository,
        folder=settings.upload_folder,
        max_upload_bytes=settings.max_upload_bytes,
        orchestrated_max_bytes=settings.orchestrated_max_bytes,
    )


@pytest.fixture
def container(
    settings: Settings,
    lock_service: LockService,
    progress_service: ProgressService,
    photo_service: PhotoService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        lock_service=lock_service,
        progress_service=progress_service,
        photo_service=photo_service,
        close_resources=close_resources,
    )


@pytest.fixture
def api() -> FakeHuntApiClient:
    return FakeHuntApiClient()
