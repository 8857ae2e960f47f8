"""Supabase-backed team code lookup."""

from dataclasses import dataclass

from supabase import Client

from hunt_sync.domain.locks import TeamRecord
from hunt_sync.services.locks import TeamRepository


@dataclass
class SupabaseTeamRepository(TeamRepository):
    """Resolves shared team codes from the ``team_codes`` table."""

    client: Client

    def get_team_by_code(self, code: str) -> TeamRecord | None:
        """Return the team mapped to a normalized code."""
        response = (
            self.client.table("team_codes")
            .select("code, team_id, team_name, organization_id, hunt_id, is_active")
            .eq("code", code)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return TeamRecord(
            team_identifier=row["team_id"],
            team_name=row.get("team_name") or row["team_id"],
            org_id=row["organization_id"],
            hunt_id=row["hunt_id"],
            is_active=bool(row.get("is_active", True)),
        )
