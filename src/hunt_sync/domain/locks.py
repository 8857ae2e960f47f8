"""Domain models for team device locks."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TeamRecord:
    """Represents a team resolved from its shared code."""

    team_identifier: str
    team_name: str
    org_id: str
    hunt_id: str
    is_active: bool = True


@dataclass(frozen=True)
class TeamLock:
    """Represents the single admitted device for a team."""

    team_identifier: str
    device_fingerprint: str
    lock_token: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        """Return whether the lock has lapsed at ``now``."""
        return self.expires_at <= now


@dataclass(frozen=True)
class LockGrant:
    """Result of a successful lock acquisition."""

    team_identifier: str
    team_name: str
    org_id: str
    hunt_id: str
    lock_token: str
    expires_at: datetime
