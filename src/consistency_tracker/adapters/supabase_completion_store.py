"""Supabase-backed day completion store."""

import asyncio
from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from consistency_tracker.domain.clock import DayRange, format_day_key, parse_day_key
from consistency_tracker.domain.progress import CompletionRecord
from consistency_tracker.services.completions import CompletionStore

_TABLE = "daily_completions"


@dataclass
class SupabaseCompletionStore(CompletionStore):
    """Supabase implementation for per-day completion records."""

    client: Client

    async def query(self, user_id: str, day_range: DayRange) -> list[CompletionRecord]:
        """Return the user's records inside the inclusive day range."""
        rows = await asyncio.to_thread(self._select, user_id, day_range)
        return [_record_from_row(row) for row in rows]

    async def upsert(self, record: CompletionRecord) -> None:
        """Create or overwrite the record for its user and day."""
        await asyncio.to_thread(self._upsert, record)

    def _select(self, user_id: str, day_range: DayRange) -> list[dict]:
        response = (
            self.client.table(_TABLE)
            .select("user_id, day_key, completed, completed_at")
            .eq("user_id", user_id)
            .gte("day_key", format_day_key(day_range.start))
            .lte("day_key", format_day_key(day_range.end))
            .execute()
        )
        return response.data or []

    def _upsert(self, record: CompletionRecord) -> None:
        self.client.table(_TABLE).upsert(
            {
                "user_id": record.user_id,
                "day_key": format_day_key(record.day_key),
                "completed": record.completed,
                "completed_at": (
                    record.completed_at.isoformat() if record.completed_at else None
                ),
            },
            on_conflict="user_id,day_key",
        ).execute()


def _record_from_row(row: dict) -> CompletionRecord:
    completed_at = row.get("completed_at")
    return CompletionRecord(
        user_id=row["user_id"],
        day_key=parse_day_key(row["day_key"]),
        completed=bool(row.get("completed")),
        completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
    )
