"""Supabase-backed daily challenge repository."""

import asyncio
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supabase import Client

from consistency_tracker.domain.challenges import ChallengeArtifact, ChallengeKind
from consistency_tracker.domain.clock import format_day_key, parse_day_key
from consistency_tracker.services.challenges import ChallengeRepository

_TABLE = "daily_challenges"
_COLUMNS = (
    "id, user_id, day_key, title, subtitle, emoji, kind, target_value, "
    "completed, linked_task_id, toast_shown, locked, completed_at"
)


@dataclass
class SupabaseChallengeRepository(ChallengeRepository):
    """Supabase implementation for daily challenge persistence."""

    client: Client

    async def get_challenge(
        self, user_id: str, day_key: date
    ) -> ChallengeArtifact | None:
        """Return the user's challenge for the day, if present."""
        row = await asyncio.to_thread(self._select, user_id, day_key)
        if row is None:
            return None
        return _artifact_from_row(row)

    async def save_challenge(self, artifact: ChallengeArtifact) -> None:
        """Upsert the challenge on its user and day."""
        await asyncio.to_thread(self._upsert, artifact)

    def _select(self, user_id: str, day_key: date) -> dict | None:
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("user_id", user_id)
            .eq("day_key", format_day_key(day_key))
            .limit(1)
            .execute()
        )
        if response.data:
            return response.data[0]
        return None

    def _upsert(self, artifact: ChallengeArtifact) -> None:
        self.client.table(_TABLE).upsert(
            {
                "id": str(artifact.id),
                "user_id": artifact.user_id,
                "day_key": format_day_key(artifact.day_key),
                "title": artifact.title,
                "subtitle": artifact.subtitle,
                "emoji": artifact.emoji,
                "kind": artifact.kind.value,
                "target_value": artifact.target_value,
                "completed": artifact.completed,
                "linked_task_id": artifact.linked_task_id,
                "toast_shown": artifact.toast_shown,
                "locked": artifact.locked,
                "completed_at": (
                    artifact.completed_at.isoformat() if artifact.completed_at else None
                ),
            },
            on_conflict="user_id,day_key",
        ).execute()


def _artifact_from_row(row: dict) -> ChallengeArtifact:
    completed_at = row.get("completed_at")
    return ChallengeArtifact(
        id=UUID(row["id"]),
        user_id=row["user_id"],
        day_key=parse_day_key(row["day_key"]),
        title=row["title"],
        subtitle=row.get("subtitle") or "",
        emoji=row.get("emoji") or "",
        kind=ChallengeKind(row.get("kind") or ChallengeKind.FITNESS),
        target_value=int(row.get("target_value") or 0),
        completed=bool(row.get("completed")),
        linked_task_id=row.get("linked_task_id"),
        toast_shown=bool(row.get("toast_shown")),
        locked=bool(row.get("locked")),
        completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
    )
