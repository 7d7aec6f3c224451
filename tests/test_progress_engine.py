"""Tests for the goal progress engine."""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from consistency_tracker.domain.errors import InsufficientData, StoreUnavailable
from consistency_tracker.domain.events import DayCompletionChanged, ProfileChanged
from consistency_tracker.domain.profile import ProfileField
from consistency_tracker.domain.progress import ProgressResult
from consistency_tracker.services.events import EventBus
from consistency_tracker.services.progress import ProgressEngine
from tests.conftest import (
    USER_ID,
    FakeClock,
    InMemoryCompletionStore,
    InMemoryProfileRepository,
)


def _engine(
    store: InMemoryCompletionStore, clock: FakeClock, **kwargs: object
) -> ProgressEngine:
    return ProgressEngine(user_id=USER_ID, store=store, clock=clock, **kwargs)


def test_buffer_days_give_full_credit(completion_store, clock, profile) -> None:
    completion_store.add_completed(USER_ID, date(2026, 1, 1), 27)
    engine = _engine(completion_store, clock)

    result = asyncio.run(engine.activate(profile))

    assert result.fraction == 1.0
    assert result.completed_days == 27
    assert result.elapsed_days == 19
    assert result.target_days == 30
    assert engine.latest == result


def test_one_day_short_of_buffer(completion_store, clock, profile) -> None:
    completion_store.add_completed(USER_ID, date(2026, 1, 1), 26)
    engine = _engine(completion_store, clock)

    result = asyncio.run(engine.activate(profile))

    assert result.fraction == pytest.approx(26 / 27)


def test_only_completed_days_inside_goal_count(
    completion_store, clock, profile
) -> None:
    completion_store.add_completed(USER_ID, date(2025, 12, 25), 10)
    completion_store.add_completed("someone-else", date(2026, 1, 1), 5)
    engine = _engine(completion_store, clock)

    result = asyncio.run(engine.activate(profile))

    assert result.completed_days == 3


def test_insufficient_profile_skips_storage(completion_store, clock, profile) -> None:
    engine = _engine(completion_store, clock)
    incomplete = replace(profile, daily_calories=None)

    result = asyncio.run(engine.activate(incomplete))

    assert result == ProgressResult.zero(30)
    assert completion_store.queries == 0


def test_incomplete_profile_has_no_required_goal(profile) -> None:
    incomplete = replace(profile, goal_start_date=None)

    assert profile.require_goal_spec().target_days == 30
    with pytest.raises(InsufficientData) as excinfo:
        incomplete.require_goal_spec()
    assert excinfo.value.user_id == USER_ID
    assert excinfo.value.operation == "progress.goal"


def test_store_failure_keeps_published_value(completion_store, clock, profile) -> None:
    completion_store.add_completed(USER_ID, date(2026, 1, 1), 10)
    engine = _engine(completion_store, clock)
    first = asyncio.run(engine.activate(profile))

    completion_store.fail = True
    with pytest.raises(StoreUnavailable) as excinfo:
        asyncio.run(engine.recompute())

    assert engine.latest == first
    assert excinfo.value.operation == "progress.query"
    assert isinstance(excinfo.value.__cause__, ConnectionError)


def test_irrelevant_profile_change_does_not_recompute(
    completion_store, clock, profile
) -> None:
    engine = _engine(completion_store, clock)
    asyncio.run(engine.activate(profile))

    skipped = asyncio.run(engine.update_profile(replace(profile, username="kim")))
    recomputed = asyncio.run(engine.update_profile(replace(profile, target_days=60)))

    assert skipped is None
    assert recomputed is not None
    assert recomputed.target_days == 60
    assert completion_store.queries == 2


def test_events_for_other_users_are_ignored(completion_store, clock, profile) -> None:
    engine = _engine(completion_store, clock, profile=profile)

    result = asyncio.run(engine.handle_event(DayCompletionChanged(user_id="other")))

    assert result is None
    assert completion_store.queries == 0


def test_profile_event_reloads_profile(completion_store, clock, profile) -> None:
    profiles = InMemoryProfileRepository(
        profiles={USER_ID: replace(profile, target_days=10, buffer_days=None)}
    )
    engine = _engine(completion_store, clock, profiles=profiles, profile=profile)

    result = asyncio.run(
        engine.handle_event(
            ProfileChanged(user_id=USER_ID, field=ProfileField.TARGET_DAYS)
        )
    )
    ignored = asyncio.run(
        engine.handle_event(ProfileChanged(user_id=USER_ID, field=ProfileField.AVATAR))
    )

    assert result is not None
    assert result.target_days == 10
    assert ignored is None


def test_listening_engine_recomputes_on_completion(
    completion_store, clock, profile
) -> None:
    published: list[ProgressResult] = []

    async def scenario() -> None:
        bus = EventBus()
        engine = _engine(completion_store, clock, profile=profile)
        engine.subscribe(published.append)
        engine.listen(bus)
        completion_store.add_completed(USER_ID, date(2026, 1, 5), 1)
        bus.publish(DayCompletionChanged(user_id=USER_ID, day_key=date(2026, 1, 5)))
        await asyncio.sleep(0)
        await engine.drain()
        engine.close()

    asyncio.run(scenario())

    assert [result.completed_days for result in published] == [1]


def test_listening_engine_survives_store_failure(
    completion_store, clock, profile
) -> None:
    async def scenario() -> ProgressResult:
        bus = EventBus()
        engine = _engine(completion_store, clock, profile=profile)
        await engine.recompute()
        engine.listen(bus)
        completion_store.fail = True
        bus.publish(DayCompletionChanged(user_id=USER_ID))
        await asyncio.sleep(0)
        await engine.drain()
        engine.close()
        return engine.latest

    latest = asyncio.run(scenario())

    assert latest.target_days == 30


def test_profile_for_other_user_is_rejected(completion_store, clock, profile) -> None:
    engine = ProgressEngine(user_id="other", store=completion_store, clock=clock)

    with pytest.raises(ValueError):
        asyncio.run(engine.activate(profile))
