"""Per-user engine sessions."""

import logging
from dataclasses import dataclass, field

from consistency_tracker.domain.clock import Clock
from consistency_tracker.domain.errors import StoreUnavailable
from consistency_tracker.domain.events import ProfileChanged
from consistency_tracker.domain.profile import ProfileSnapshot
from consistency_tracker.services.challenges import ChallengeEngine, ChallengeRepository
from consistency_tracker.services.completions import CompletionStore
from consistency_tracker.services.content import ContentGenerator
from consistency_tracker.services.events import EventBus
from consistency_tracker.services.profiles import ProfileRepository
from consistency_tracker.services.progress import ProgressEngine
from consistency_tracker.services.single_flight import SingleFlight

_logger = logging.getLogger(__name__)


@dataclass
class UserSession:
    """Engines bound to one user."""

    user_id: str
    profile: ProfileSnapshot
    progress: ProgressEngine
    challenge: ChallengeEngine

    def apply_profile(self, profile: ProfileSnapshot) -> None:
        """Swap in a freshly loaded profile without recomputing."""
        self.profile = profile
        self.progress.profile = profile

    def close(self) -> None:
        """Stop listening for events and drop the cached challenge."""
        self.progress.close()
        self.challenge.reset()


@dataclass
class EngineSessions:
    """Creates and keeps engine instances per user.

    All sessions share the event bus and the single-flight registry, so two
    sessions for the same user still generate a day's challenge only once.
    """

    profiles: ProfileRepository
    completion_store: CompletionStore
    challenge_repository: ChallengeRepository
    generator: ContentGenerator
    bus: EventBus
    clock: Clock
    single_flight: SingleFlight = field(default_factory=SingleFlight)
    listen: bool = False
    _sessions: dict[str, UserSession] = field(default_factory=dict, init=False)

    def get(self, user_id: str) -> UserSession | None:
        """Return the open session for a user, if any."""
        return self._sessions.get(user_id)

    async def open(self, user_id: str) -> UserSession | None:
        """Return the user's session with a freshly loaded profile.

        Returns None when the user has no profile. Fields that differ from the
        session's previous profile are published as ProfileChanged events.
        """
        profile = await self._load_profile(user_id)
        if profile is None:
            return None
        session = self._sessions.get(user_id)
        if session is None:
            session = self._create(profile)
            self._sessions[user_id] = session
            _logger.info("Opened engine session: user_id=%s", user_id)
        else:
            changed = session.profile.changed_fields(profile)
            session.apply_profile(profile)
            for profile_field in sorted(changed):
                self.bus.publish(ProfileChanged(user_id=user_id, field=profile_field))
        return session

    def close(self, user_id: str) -> None:
        """Close one user's session."""
        session = self._sessions.pop(user_id, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        """Close every open session, e.g. on shutdown."""
        for user_id in list(self._sessions):
            self.close(user_id)

    def _create(self, profile: ProfileSnapshot) -> UserSession:
        progress = ProgressEngine(
            user_id=profile.user_id,
            store=self.completion_store,
            clock=self.clock,
            profiles=self.profiles,
            profile=profile,
        )
        if self.listen:
            progress.listen(self.bus)
        challenge = ChallengeEngine(
            user_id=profile.user_id,
            repository=self.challenge_repository,
            generator=self.generator,
            clock=self.clock,
            single_flight=self.single_flight,
        )
        return UserSession(
            user_id=profile.user_id,
            profile=profile,
            progress=progress,
            challenge=challenge,
        )

    async def _load_profile(self, user_id: str) -> ProfileSnapshot | None:
        try:
            return await self.profiles.get_profile(user_id)
        except Exception as exc:
            raise StoreUnavailable(
                "Profile lookup failed", user_id=user_id, operation="profile.load"
            ) from exc
