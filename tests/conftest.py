"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta, tzinfo

import pytest

from consistency_tracker.config import Settings
from consistency_tracker.containers import AppContainer
from consistency_tracker.domain.challenges import (
    ChallengeArtifact,
    ChallengeDraft,
    ChallengeKind,
)
from consistency_tracker.domain.clock import Clock, DayRange, day_key
from consistency_tracker.domain.profile import ProfileSnapshot
from consistency_tracker.domain.progress import CompletionRecord
from consistency_tracker.services.challenges import ChallengeRepository
from consistency_tracker.services.completions import (
    CompletionStore,
    DayCompletionService,
)
from consistency_tracker.services.content import ChallengeClient, ContentGenerator
from consistency_tracker.services.events import EventBus
from consistency_tracker.services.profiles import ProfileRepository
from consistency_tracker.services.sessions import EngineSessions
from consistency_tracker.services.single_flight import SingleFlight

USER_ID = "user-1"


@dataclass
class FakeClock(Clock):
    """Clock that only moves when told to."""

    current: datetime = field(
        default_factory=lambda: datetime(2026, 1, 20, 12, 0, tzinfo=UTC)
    )
    tz: tzinfo = UTC

    def now(self) -> datetime:
        return self.current.astimezone(self.tz)

    def today(self) -> date:
        return day_key(self.current, self.tz)

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


@dataclass
class InMemoryCompletionStore(CompletionStore):
    """In-memory completion store for tests."""

    records: dict[tuple[str, date], CompletionRecord] = field(default_factory=dict)
    queries: int = 0
    fail: bool = False

    def add_completed(self, user_id: str, start: date, count: int) -> None:
        for offset in range(count):
            day = start + timedelta(days=offset)
            self.records[(user_id, day)] = CompletionRecord(
                user_id=user_id, day_key=day, completed=True
            )

    async def query(self, user_id: str, day_range: DayRange) -> list[CompletionRecord]:
        self.queries += 1
        if self.fail:
            raise ConnectionError("store offline")
        return [
            record
            for (owner, day), record in self.records.items()
            if owner == user_id and day_range.contains(day)
        ]

    async def upsert(self, record: CompletionRecord) -> None:
        if self.fail:
            raise ConnectionError("store offline")
        self.records[(record.user_id, record.day_key)] = record


@dataclass
class InMemoryChallengeRepository(ChallengeRepository):
    """In-memory challenge repository for tests."""

    artifacts: dict[tuple[str, date], ChallengeArtifact] = field(default_factory=dict)
    saves: list[ChallengeArtifact] = field(default_factory=list)
    reads: int = 0
    fail_get: bool = False
    fail_save: bool = False

    async def get_challenge(
        self, user_id: str, day_key: date
    ) -> ChallengeArtifact | None:
        self.reads += 1
        if self.fail_get:
            raise ConnectionError("store offline")
        return self.artifacts.get((user_id, day_key))

    async def save_challenge(self, artifact: ChallengeArtifact) -> None:
        if self.fail_save:
            raise ConnectionError("store offline")
        self.saves.append(artifact)
        self.artifacts[(artifact.user_id, artifact.day_key)] = artifact


@dataclass
class FakeContentGenerator(ContentGenerator):
    """Generator returning a fixed draft and counting calls."""

    draft: ChallengeDraft = field(
        default_factory=lambda: ChallengeDraft(
            title="Plank for 3 minutes",
            subtitle="Hold a plank for three minutes in total",
            emoji="💪",
            kind=ChallengeKind.FITNESS,
            target_value=3,
        )
    )
    calls: int = 0
    error: Exception | None = None
    gate: asyncio.Event | None = None

    async def generate_challenge(
        self, profile: ProfileSnapshot, day_key: date
    ) -> ChallengeDraft:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.draft


@dataclass
class FakeChallengeClient(ChallengeClient):
    """Fake LLM client returning a fixed payload."""

    payload: dict[str, object] = field(
        default_factory=lambda: {
            "title": "Drink 8 glasses of water",
            "subtitle": "Stay hydrated through the day",
            "emoji": "💧",
            "kind": "diet",
            "target_value": 8,
        }
    )
    prompts: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        schema: dict[str, object],
        instructions: str,
        prompt: str,
    ) -> dict[str, object]:
        self.instructions.append(instructions)
        self.prompts.append(prompt)
        return self.payload


@dataclass
class InMemoryProfileRepository(ProfileRepository):
    """In-memory profile repository for tests."""

    profiles: dict[str, ProfileSnapshot] = field(default_factory=dict)

    async def get_profile(self, user_id: str) -> ProfileSnapshot | None:
        return self.profiles.get(user_id)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        api_token="api-token",
        openai_api_key="openai-key",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def profile() -> ProfileSnapshot:
    return ProfileSnapshot(
        user_id=USER_ID,
        goal="keep_healthy",
        goal_start_date=date(2026, 1, 1),
        target_days=30,
        buffer_days=3,
        height_value=180,
        height_unit="cm",
        weight_value=80,
        weight_unit="kg",
        age=30,
        gender="female",
        daily_calories=2000,
    )


@pytest.fixture
def completion_store() -> InMemoryCompletionStore:
    return InMemoryCompletionStore()


@pytest.fixture
def challenge_repository() -> InMemoryChallengeRepository:
    return InMemoryChallengeRepository()


@pytest.fixture
def generator() -> FakeContentGenerator:
    return FakeContentGenerator()


@pytest.fixture
def profile_repository(profile: ProfileSnapshot) -> InMemoryProfileRepository:
    return InMemoryProfileRepository(profiles={profile.user_id: profile})


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    clock: FakeClock,
    completion_store: InMemoryCompletionStore,
    challenge_repository: InMemoryChallengeRepository,
    generator: FakeContentGenerator,
    profile_repository: InMemoryProfileRepository,
) -> AppContainer:
    bus = EventBus()
    sessions = EngineSessions(
        profiles=profile_repository,
        completion_store=completion_store,
        challenge_repository=challenge_repository,
        generator=generator,
        bus=bus,
        clock=clock,
        single_flight=SingleFlight(),
    )

    async def close_resources() -> None:
        sessions.close_all()

    return AppContainer(
        settings=settings,
        clock=clock,
        bus=bus,
        sessions=sessions,
        day_completion_service=DayCompletionService(
            store=completion_store, bus=bus, clock=clock
        ),
        close_resources=close_resources,
    )
