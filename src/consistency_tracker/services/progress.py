"""Goal progress engine with buffer-day tolerance."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from consistency_tracker.domain.clock import Clock, DayRange, days_between
from consistency_tracker.domain.errors import (
    EngineError,
    InsufficientData,
    StoreUnavailable,
)
from consistency_tracker.domain.events import (
    EngineEvent,
    EventTopic,
    ProfileChanged,
)
from consistency_tracker.domain.profile import PROGRESS_FIELDS, ProfileSnapshot
from consistency_tracker.domain.progress import (
    GoalSpec,
    ProgressResult,
    calculate_fraction,
)
from consistency_tracker.services.completions import CompletionStore
from consistency_tracker.services.events import EventBus, Subscription
from consistency_tracker.services.profiles import ProfileRepository
from consistency_tracker.services.recompute import RecomputeCoordinator

_logger = logging.getLogger(__name__)


def _progress_coordinator() -> RecomputeCoordinator[ProgressResult]:
    return RecomputeCoordinator("progress", initial=ProgressResult.zero())


@dataclass
class ProgressEngine:
    """Computes and publishes one user's goal progress.

    Triggers may overlap freely; the coordinator keeps only the result of the
    most recent request. Readers use ``latest`` and never wait on storage.
    """

    user_id: str
    store: CompletionStore
    clock: Clock
    profiles: ProfileRepository | None = None
    coordinator: RecomputeCoordinator[ProgressResult] = field(
        default_factory=_progress_coordinator
    )
    profile: ProfileSnapshot | None = None
    _subscriptions: list[Subscription] = field(default_factory=list, init=False)
    _consumers: list[asyncio.Task] = field(default_factory=list, init=False)
    _pending: set[asyncio.Task] = field(default_factory=set, init=False)

    @property
    def latest(self) -> ProgressResult:
        """Return the last published progress."""
        return self.coordinator.latest or ProgressResult.zero()

    def subscribe(
        self, callback: Callable[[ProgressResult], None]
    ) -> Callable[[], None]:
        """Register for published progress results."""
        return self.coordinator.subscribe(callback)

    async def activate(self, profile: ProfileSnapshot) -> ProgressResult:
        """Start the session with a profile and compute initial progress."""
        self._check_owner(profile)
        self.profile = profile
        return await self.recompute()

    async def update_profile(self, profile: ProfileSnapshot) -> ProgressResult | None:
        """Replace the profile, recomputing only if a progress input changed."""
        self._check_owner(profile)
        previous = self.profile
        self.profile = profile
        if previous is not None:
            if not previous.changed_fields(profile) & PROGRESS_FIELDS:
                return None
        return await self.recompute()

    async def handle_event(self, event: EngineEvent) -> ProgressResult | None:
        """Recompute for a relevant bus event."""
        if event.user_id != self.user_id:
            return None
        if isinstance(event, ProfileChanged):
            if event.field not in PROGRESS_FIELDS:
                return None
            if self.profiles is not None:
                self.profile = await self.profiles.get_profile(self.user_id)
        return await self.recompute()

    async def recompute(self) -> ProgressResult:
        """Request a recomputation and return the published progress.

        Raises StoreUnavailable when the completion query fails; the previously
        published value is kept.
        """
        profile = self.profile
        try:
            goal = self._require_goal(profile)
        except InsufficientData as exc:
            _logger.info("Progress short-circuited to zero: %s", exc)
            target_days = profile.target_days if profile is not None else None
            zero = ProgressResult.zero(target_days or 0)

            async def short_circuit() -> ProgressResult:
                return zero

            published = await self.coordinator.request_recompute(short_circuit)
        else:
            try:
                published = await self.coordinator.request_recompute(
                    lambda: self._compute(goal)
                )
            except StoreUnavailable as exc:
                _logger.warning("Progress recompute failed: %s", exc)
                raise
        return self.latest if published is None else published

    def listen(self, bus: EventBus) -> None:
        """Consume completion and profile events until ``close`` is called."""
        for topic in (EventTopic.DAY_COMPLETION_CHANGED, EventTopic.PROFILE_CHANGED):
            subscription = bus.subscribe(topic)
            self._subscriptions.append(subscription)
            self._consumers.append(asyncio.create_task(self._consume(subscription)))

    def close(self) -> None:
        """Stop consuming bus events."""
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
        self._consumers.clear()

    async def drain(self) -> None:
        """Wait for recomputations started from bus events."""
        await asyncio.sleep(0)
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            self._track(asyncio.create_task(self._handle_quietly(event)))

    async def _handle_quietly(self, event: EngineEvent) -> None:
        try:
            await self.handle_event(event)
        except EngineError as exc:
            _logger.warning("Progress trigger %s failed: %s", event.topic, exc)

    def _track(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _compute(self, goal: GoalSpec) -> ProgressResult:
        today = self.clock.today()
        elapsed_days = max(0, days_between(goal.start_date, today))
        day_range = DayRange.for_goal(goal.start_date, goal.target_days)
        try:
            records = await self.store.query(self.user_id, day_range)
        except Exception as exc:
            raise StoreUnavailable(
                "Completion query failed",
                user_id=self.user_id,
                day_key=today,
                operation="progress.query",
            ) from exc
        completed = {
            record.day_key
            for record in records
            if record.completed and day_range.contains(record.day_key)
        }
        return ProgressResult(
            completed_days=len(completed),
            elapsed_days=elapsed_days,
            target_days=goal.target_days,
            fraction=calculate_fraction(
                len(completed), goal.target_days, goal.allowance
            ),
        )

    def _require_goal(self, profile: ProfileSnapshot | None) -> GoalSpec:
        if profile is None:
            raise InsufficientData(
                "No profile loaded", user_id=self.user_id, operation="progress.goal"
            )
        return profile.require_goal_spec()

    def _check_owner(self, profile: ProfileSnapshot) -> None:
        if profile.user_id != self.user_id:
            raise ValueError(
                f"Profile for {profile.user_id} given to engine for {self.user_id}"
            )
