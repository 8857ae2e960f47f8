"""Supabase-backed queue of unlinked photos."""

from dataclasses import dataclass

from supabase import Client

from hunt_sync.services.photos import OrphanRepository


@dataclass
class SupabaseOrphanRepository(OrphanRepository):
    """Records photo objects left behind by a failed orchestrated upload."""

    client: Client

    def mark_orphan(self, path: str, team_id: str, stop_id: str, reason: str) -> None:
        """Insert an ``orphaned_photos`` row for later cleanup."""
        self.client.table("orphaned_photos").insert(
            {
                "path": path,
                "team_id": team_id,
                "stop_id": stop_id,
                "reason": reason,
            }
        ).execute()
