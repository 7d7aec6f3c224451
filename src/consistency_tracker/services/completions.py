"""Day completion records and their settlement."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, date
from typing import Protocol

from consistency_tracker.domain.clock import Clock, DayRange, next_midnight
from consistency_tracker.domain.errors import StoreUnavailable
from consistency_tracker.domain.events import DayCompletionChanged
from consistency_tracker.domain.progress import CompletionRecord
from consistency_tracker.domain.tasks import TaskSnapshot
from consistency_tracker.services.events import EventBus

_logger = logging.getLogger(__name__)


class CompletionStore(Protocol):
    """Persistence interface for per-day completion records."""

    async def query(self, user_id: str, day_range: DayRange) -> list[CompletionRecord]:
        """Return the user's records whose day falls in the inclusive range."""

    async def upsert(self, record: CompletionRecord) -> None:
        """Create or overwrite the record for the user and day."""


def is_day_completed(tasks: list[TaskSnapshot], day: date) -> bool:
    """Return True if the day has at least one task and all of them are done."""
    day_tasks = [task for task in tasks if task.day_key == day]
    if not day_tasks:
        return False
    return all(task.done for task in day_tasks)


@dataclass
class DayCompletionService:
    """Writes completion records and announces the change."""

    store: CompletionStore
    bus: EventBus
    clock: Clock

    async def mark_day(
        self, user_id: str, day: date, completed: bool
    ) -> CompletionRecord:
        """Persist a day's completion state and publish the change."""
        record = CompletionRecord(
            user_id=user_id,
            day_key=day,
            completed=completed,
            completed_at=self.clock.now() if completed else None,
        )
        try:
            await self.store.upsert(record)
        except Exception as exc:
            raise StoreUnavailable(
                "Completion save failed",
                user_id=user_id,
                day_key=day,
                operation="completion.upsert",
            ) from exc
        _logger.info(
            "Day completion saved: user_id=%s day=%s completed=%s",
            user_id,
            day,
            completed,
        )
        self.bus.publish(DayCompletionChanged(user_id=user_id, day_key=day))
        return record

    async def evaluate_day(
        self, user_id: str, day: date, tasks: list[TaskSnapshot]
    ) -> CompletionRecord | None:
        """Settle a past day from its tasks; today is left for midnight."""
        if day >= self.clock.today():
            _logger.debug("Deferring settlement of %s until midnight", day)
            return None
        return await self.mark_day(user_id, day, is_day_completed(tasks, day))


@dataclass
class MidnightSettlement:
    """Invokes a callback with the day that just ended, every local midnight."""

    clock: Clock
    on_midnight: Callable[[date], Awaitable[None]]
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _task: asyncio.Task | None = field(default=None, init=False)

    @property
    def running(self) -> bool:
        """Return True while the settlement loop is scheduled."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the settlement loop, replacing any running one."""
        self.stop()
        self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        """Cancel the settlement loop."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def seconds_until_midnight(self) -> float:
        """Return the delay until the next local midnight, at least one second."""
        now = self.clock.now()
        midnight = next_midnight(now, now.tzinfo)
        delta = midnight.astimezone(UTC) - now.astimezone(UTC)
        return max(1.0, delta.total_seconds())

    async def _run(self) -> None:
        while True:
            ending_day = self.clock.today()
            await self.sleep(self.seconds_until_midnight())
            try:
                await self.on_midnight(ending_day)
            except Exception:
                _logger.exception("Midnight settlement failed for %s", ending_day)
