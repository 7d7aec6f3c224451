"""Supabase-backed profile repository."""

import asyncio
from dataclasses import dataclass
from datetime import date

from supabase import Client

from consistency_tracker.domain.profile import ProfileSnapshot
from consistency_tracker.services.profiles import ProfileRepository

_COLUMNS = (
    "id, goal, goal_start_date, target_days, buffer_days, height_value, "
    "height_unit, weight_value, weight_unit, age, gender, lifestyle, "
    "daily_calories, daily_protein, target_weight_loss_value, "
    "target_weight_loss_unit, username, avatar_name"
)


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for profile lookups."""

    client: Client

    async def get_profile(self, user_id: str) -> ProfileSnapshot | None:
        """Return the profile snapshot for a user, if present."""
        row = await asyncio.to_thread(self._select, user_id)
        if row is None:
            return None
        start = row.get("goal_start_date")
        return ProfileSnapshot(
            user_id=row["id"],
            goal=row.get("goal"),
            goal_start_date=date.fromisoformat(start[:10]) if start else None,
            target_days=row.get("target_days"),
            buffer_days=row.get("buffer_days"),
            height_value=row.get("height_value"),
            height_unit=row.get("height_unit"),
            weight_value=row.get("weight_value"),
            weight_unit=row.get("weight_unit"),
            age=row.get("age"),
            gender=row.get("gender"),
            lifestyle=row.get("lifestyle"),
            daily_calories=row.get("daily_calories"),
            daily_protein=row.get("daily_protein"),
            target_weight_loss_value=row.get("target_weight_loss_value"),
            target_weight_loss_unit=row.get("target_weight_loss_unit"),
            username=row.get("username"),
            avatar_name=row.get("avatar_name"),
        )

    def _select(self, user_id: str) -> dict | None:
        response = (
            self.client.table("profiles")
            .select(_COLUMNS)
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
        if response.data:
            return response.data[0]
        return None
