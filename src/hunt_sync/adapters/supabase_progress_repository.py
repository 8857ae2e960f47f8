"""Supabase-backed progress snapshot repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from hunt_sync.domain.progress import ProgressSnapshot, dump_snapshot, parse_snapshot
from hunt_sync.services.progress import ProgressRepository


@dataclass
class SupabaseProgressRepository(ProgressRepository):
    """Keeps one ``team_progress`` row per (org, team, hunt)."""

    client: Client

    def get_snapshot(
        self, org_id: str, team_id: str, hunt_id: str
    ) -> ProgressSnapshot | None:
        """Return the stored snapshot, if any."""
        response = (
            self.client.table("team_progress")
            .select("progress_json")
            .eq("organization_id", org_id)
            .eq("team_id", team_id)
            .eq("hunt_id", hunt_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_snapshot(response.data[0].get("progress_json") or {})

    def save_snapshot(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot,
        session_id: str | None,
        saved_at: datetime,
    ) -> None:
        """Overwrite the whole snapshot row."""
        response = (
            self.client.table("team_progress")
            .upsert(
                {
                    "organization_id": org_id,
                    "team_id": team_id,
                    "hunt_id": hunt_id,
                    "progress_json": dump_snapshot(snapshot),
                    "last_session_id": session_id,
                    "updated_at": saved_at.isoformat(),
                },
                on_conflict="organization_id,team_id,hunt_id",
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save progress snapshot")
