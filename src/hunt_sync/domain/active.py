"""Consumed shape of the consolidated read aggregator."""

from pydantic import BaseModel, Field

from hunt_sync.domain.progress import ProgressSnapshot


class ActiveLocation(BaseModel):
    """A hunt stop as listed by the aggregator."""

    id: str
    title: str | None = None


class ActiveData(BaseModel):
    """Aggregated payload; only progress and locations are used here."""

    locations: list[ActiveLocation] = Field(default_factory=list)
    progress: ProgressSnapshot = Field(default_factory=dict)
    settings: dict[str, object] = Field(default_factory=dict)
    sponsors: list[dict[str, object]] | dict[str, object] | None = None

    def stop_ids(self) -> list[str]:
        """Return the ids of every known stop."""
        return [location.id for location in self.locations]
