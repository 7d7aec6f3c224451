"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from consistency_tracker.adapters.openai_challenge_client import OpenAIChallengeClient
from consistency_tracker.adapters.supabase_challenge_repository import (
    SupabaseChallengeRepository,
)
from consistency_tracker.adapters.supabase_completion_store import (
    SupabaseCompletionStore,
)
from consistency_tracker.adapters.supabase_profile_repository import (
    SupabaseProfileRepository,
)
from consistency_tracker.config import Settings
from consistency_tracker.domain.clock import Clock, SystemClock
from consistency_tracker.services.completions import DayCompletionService
from consistency_tracker.services.content import ChallengeContentService
from consistency_tracker.services.events import EventBus
from consistency_tracker.services.sessions import EngineSessions
from consistency_tracker.services.single_flight import SingleFlight


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    clock: Clock
    bus: EventBus
    sessions: EngineSessions
    day_completion_service: DayCompletionService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    clock = SystemClock.for_timezone(resolved_settings.default_timezone)
    bus = EventBus()
    completion_store = SupabaseCompletionStore(supabase_client)
    openai_client = OpenAIChallengeClient.create(
        resolved_settings.openai_api_key,
        max_output_tokens=resolved_settings.openai_max_output_tokens,
    )
    content_service = ChallengeContentService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    sessions = EngineSessions(
        profiles=SupabaseProfileRepository(supabase_client),
        completion_store=completion_store,
        challenge_repository=SupabaseChallengeRepository(supabase_client),
        generator=content_service,
        bus=bus,
        clock=clock,
        single_flight=SingleFlight(),
        listen=resolved_settings.listen_events,
    )
    day_completion_service = DayCompletionService(
        store=completion_store, bus=bus, clock=clock
    )

    async def close_resources() -> None:
        sessions.close_all()
        await openai_client.close()

    return AppContainer(
        settings=resolved_settings,
        clock=clock,
        bus=bus,
        sessions=sessions,
        day_completion_service=day_completion_service,
        close_resources=close_resources,
    )
