"""Models for per-team progress snapshots."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel


class StopState(BaseModel):
    """Progress for a single stop.

    A stop marked done always carries its photo reference and completion
    time; constructing one without them fails validation.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    done: bool = False
    photo_reference: str | None = None
    completed_at: datetime | None = None
    revealed_hints: int = Field(default=0, ge=0)
    notes: str | None = None

    @model_validator(mode="after")
    def _require_proof_when_done(self) -> "StopState":
        if self.done and (not self.photo_reference or self.completed_at is None):
            raise ValueError("a completed stop needs a photo reference and time")
        return self


ProgressSnapshot = dict[str, StopState]

SNAPSHOT_ADAPTER: TypeAdapter[ProgressSnapshot] = TypeAdapter(ProgressSnapshot)


def parse_snapshot(raw: object) -> ProgressSnapshot:
    """Validate a JSON-like mapping into a snapshot."""
    if raw is None:
        return {}
    return SNAPSHOT_ADAPTER.validate_python(raw)


def dump_snapshot(snapshot: ProgressSnapshot) -> dict[str, dict[str, object]]:
    """Serialize a snapshot to its camelCase wire form."""
    return {
        stop_id: state.model_dump(mode="json", by_alias=True)
        for stop_id, state in snapshot.items()
    }


def completed_count(snapshot: ProgressSnapshot, stop_ids: list[str]) -> int:
    """Count known stops marked done."""
    return sum(
        1 for stop_id in stop_ids if (state := snapshot.get(stop_id)) and state.done
    )


def percent_complete(snapshot: ProgressSnapshot, stop_ids: list[str]) -> int:
    """Return the rounded completion percentage, 0 for an empty stop list."""
    if not stop_ids:
        return 0
    return round(completed_count(snapshot, stop_ids) / len(stop_ids) * 100)


def with_hints_hidden(snapshot: ProgressSnapshot) -> ProgressSnapshot:
    """Return a copy where every stop starts with no revealed hints."""
    return {
        stop_id: state.model_copy(update={"revealed_hints": 0})
        for stop_id, state in snapshot.items()
    }


@dataclass(frozen=True)
class TeamScope:
    """Identifies the snapshot owned by one team in one hunt."""

    org_id: str
    team_id: str
    hunt_id: str
