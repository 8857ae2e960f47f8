"""Supabase-backed team lock repository."""

from dataclasses import dataclass
from datetime import datetime

from postgrest.exceptions import APIError
from supabase import Client

from hunt_sync.domain.locks import TeamLock
from hunt_sync.services.locks import LockRepository

_COLUMNS = "team_id, device_fingerprint, lock_token, issued_at, expires_at"
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseLockRepository(LockRepository):
    """Stores one lock row per team in ``device_locks``."""

    client: Client

    def get_lock(self, team_identifier: str) -> TeamLock | None:
        """Return the stored lock for a team."""
        response = (
            self.client.table("device_locks")
            .select(_COLUMNS)
            .eq("team_id", team_identifier)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_lock(response.data[0])

    def get_lock_by_token(self, lock_token: str) -> TeamLock | None:
        """Return the lock owning a token."""
        response = (
            self.client.table("device_locks")
            .select(_COLUMNS)
            .eq("lock_token", lock_token)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_lock(response.data[0])

    def insert_lock(self, lock: TeamLock) -> bool:
        """Insert a lock row; a duplicate team means another device won."""
        try:
            response = (
                self.client.table("device_locks").insert(_to_row(lock)).execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                return False
            raise
        return bool(response.data)

    def replace_lock(self, lock: TeamLock, expected_token: str) -> bool:
        """Swap the lock row only if it still holds ``expected_token``."""
        response = (
            self.client.table("device_locks")
            .update(_to_row(lock))
            .eq("team_id", lock.team_identifier)
            .eq("lock_token", expected_token)
            .execute()
        )
        return bool(response.data)

    def delete_lock(self, lock_token: str) -> None:
        """Delete the lock owning a token."""
        self.client.table("device_locks").delete().eq(
            "lock_token", lock_token
        ).execute()

    def delete_expired(self, now: datetime) -> int:
        """Delete expired locks and return how many were removed."""
        response = (
            self.client.table("device_locks")
            .delete()
            .lt("expires_at", now.isoformat())
            .execute()
        )
        return len(response.data or [])


def _to_row(lock: TeamLock) -> dict[str, object]:
    return {
        "team_id": lock.team_identifier,
        "device_fingerprint": lock.device_fingerprint,
        "lock_token": lock.lock_token,
        "issued_at": lock.issued_at.isoformat(),
        "expires_at": lock.expires_at.isoformat(),
    }


def _to_lock(row: dict[str, object]) -> TeamLock:
    return TeamLock(
        team_identifier=str(row["team_id"]),
        device_fingerprint=str(row["device_fingerprint"]),
        lock_token=str(row["lock_token"]),
        issued_at=datetime.fromisoformat(str(row["issued_at"])),
        expires_at=datetime.fromisoformat(str(row["expires_at"])),
    )
