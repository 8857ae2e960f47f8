"""Device lock manager: admits one active device per team."""

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from hunt_sync.config import normalize_team_code
from hunt_sync.domain.locks import LockGrant, TeamLock, TeamRecord
from hunt_sync.errors import InvalidTeamCode, LockConflict, ValidationError

logger = logging.getLogger(__name__)


class TeamRepository(Protocol):
    """Lookup interface for team codes."""

    def get_team_by_code(self, code: str) -> TeamRecord | None:
        """Return the team for a normalized code, if present."""


class LockRepository(Protocol):
    """Persistence interface for team locks.

    Writes are conditional so two devices racing for the same team cannot
    both win.
    """

    def get_lock(self, team_identifier: str) -> TeamLock | None:
        """Return the stored lock for a team, expired or not."""

    def get_lock_by_token(self, lock_token: str) -> TeamLock | None:
        """Return the lock that owns a token, if present."""

    def insert_lock(self, lock: TeamLock) -> bool:
        """Insert a lock if the team has none; return whether it was stored."""

    def replace_lock(self, lock: TeamLock, expected_token: str) -> bool:
        """Replace the team's lock only if it still carries ``expected_token``."""

    def delete_lock(self, lock_token: str) -> None:
        """Delete the lock owning a token."""

    def delete_expired(self, now: datetime) -> int:
        """Delete all locks that expired before ``now``; return the count."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def device_hint(user_agent: str, ip: str, seed: str) -> str:
    """Derive a stable device fingerprint from request metadata."""
    combined = f"{user_agent}:{ip}:{seed}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:16]


def hash_team_code(code: str) -> str:
    """Hash a team code for log lines."""
    return hashlib.sha256(code.encode("utf-8")).hexdigest()[:12]


@dataclass
class LockService:
    """Grants, refreshes and releases team locks."""

    team_repository: TeamRepository
    lock_repository: LockRepository
    ttl_seconds: int = 86400
    clock: Callable[[], datetime] = field(default=_utcnow)

    def acquire_lock(self, team_code: str, device_fingerprint: str) -> LockGrant:
        """Admit a device for the team behind ``team_code``.

        Raises ``InvalidTeamCode`` for unknown or inactive codes and
        ``LockConflict`` when another device holds a live lock.
        """
        code = normalize_team_code(team_code)
        if code is None:
            raise ValidationError("Team code is required")
        if not device_fingerprint:
            raise ValidationError("Device fingerprint is required")

        team = self.team_repository.get_team_by_code(code)
        if team is None or not team.is_active:
            logger.info("Lock refused for code %s: invalid code", hash_team_code(code))
            raise InvalidTeamCode()

        now = self.clock()
        lock = TeamLock(
            team_identifier=team.team_identifier,
            device_fingerprint=device_fingerprint,
            lock_token=secrets.token_urlsafe(32),
            issued_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        existing = self.lock_repository.get_lock(team.team_identifier)
        if existing is None:
            stored = self.lock_repository.insert_lock(lock)
        else:
            if (
                not existing.is_expired(now)
                and existing.device_fingerprint != device_fingerprint
            ):
                raise self._conflict(team, existing, now)
            stored = self.lock_repository.replace_lock(lock, existing.lock_token)

        if not stored:
            # Another device won the race between our read and write.
            winner = self.lock_repository.get_lock(team.team_identifier)
            if winner is None or winner.device_fingerprint != device_fingerprint:
                raise self._conflict(team, winner, now)
            lock = winner

        action = "refreshed" if existing and not existing.is_expired(now) else "issued"
        logger.info("Lock %s for team %s", action, team.team_identifier)
        return LockGrant(
            team_identifier=team.team_identifier,
            team_name=team.team_name,
            org_id=team.org_id,
            hunt_id=team.hunt_id,
            lock_token=lock.lock_token,
            expires_at=lock.expires_at,
        )

    def release_lock(self, lock_token: str) -> None:
        """Release the lock owning ``lock_token`` (explicit logout)."""
        if not lock_token:
            raise ValidationError("Lock token is required")
        self.lock_repository.delete_lock(lock_token)
        logger.info("Lock released")

    def resolve_token(self, lock_token: str | None) -> TeamLock | None:
        """Return the live lock owning ``lock_token``, if any."""
        if not lock_token:
            return None
        lock = self.lock_repository.get_lock_by_token(lock_token)
        if lock is None or lock.is_expired(self.clock()):
            return None
        return lock

    def cleanup_expired(self) -> int:
        """Purge expired locks."""
        removed = self.lock_repository.delete_expired(self.clock())
        if removed:
            logger.info("Removed %s expired locks", removed)
        return removed

    def _conflict(
        self, team: TeamRecord, holder: TeamLock | None, now: datetime
    ) -> LockConflict:
        remaining = 0
        if holder is not None:
            remaining = max(0, int((holder.expires_at - now).total_seconds()))
        logger.info(
            "Lock conflict for team %s (%ss remaining)",
            team.team_identifier,
            remaining,
        )
        return LockConflict(remaining_ttl_seconds=remaining)
