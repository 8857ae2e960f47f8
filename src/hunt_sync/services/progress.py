"""Server-side progress snapshot storage."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import pydantic

from hunt_sync.domain.progress import ProgressSnapshot, StopState, parse_snapshot
from hunt_sync.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)


class ProgressRepository(Protocol):
    """Persistence interface for whole-team snapshots."""

    def get_snapshot(
        self, org_id: str, team_id: str, hunt_id: str
    ) -> ProgressSnapshot | None:
        """Return the stored snapshot, if any."""

    def save_snapshot(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot,
        session_id: str | None,
        saved_at: datetime,
    ) -> None:
        """Overwrite the stored snapshot for the team."""


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ProgressService:
    """Reads and overwrites team progress snapshots.

    Saves are last-write-wins at snapshot granularity; there is no merge.
    """

    repository: ProgressRepository
    clock: Callable[[], datetime] = field(default=_utcnow)

    def get_snapshot(self, org_id: str, team_id: str, hunt_id: str) -> ProgressSnapshot:
        """Return the team's snapshot, empty if nothing was saved yet."""
        return self.repository.get_snapshot(org_id, team_id, hunt_id) or {}

    def save_snapshot(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot | dict[str, object],
        session_id: str | None = None,
    ) -> ProgressSnapshot:
        """Validate and store the full snapshot, replacing what was there."""
        try:
            validated = parse_snapshot(snapshot)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid progress payload: {exc}") from exc
        try:
            self.repository.save_snapshot(
                org_id=org_id,
                team_id=team_id,
                hunt_id=hunt_id,
                snapshot=validated,
                session_id=session_id,
                saved_at=self.clock(),
            )
        except Exception as exc:
            logger.exception("Failed to save progress for team %s", team_id)
            raise PersistenceError("Failed to update progress") from exc
        logger.info("Saved progress for team %s: %s stops", team_id, len(validated))
        return validated

    def mark_stop_captured(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        stop_id: str,
        photo_reference: str,
        session_id: str | None = None,
    ) -> StopState:
        """Mark one stop done with its photo, keeping the rest of the snapshot."""
        current = self.get_snapshot(org_id, team_id, hunt_id)
        previous = current.get(stop_id) or StopState()
        state = previous.model_copy(
            update={
                "done": True,
                "photo_reference": photo_reference,
                "completed_at": self.clock(),
            }
        )
        self.save_snapshot(
            org_id,
            team_id,
            hunt_id,
            {**current, stop_id: state},
            session_id=session_id,
        )
        return state
