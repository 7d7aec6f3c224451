"""Daily challenge lifecycle: fetch-or-generate, completion and task linking."""

import inspect
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Protocol
from uuid import uuid4

from consistency_tracker.domain.challenges import (
    ChallengeArtifact,
    ChallengeDraft,
    ChallengeState,
)
from consistency_tracker.domain.clock import Clock
from consistency_tracker.domain.errors import (
    ChallengeLocked,
    ChallengeNotReady,
    GenerationFailed,
    GenerationInProgress,
    StoreUnavailable,
)
from consistency_tracker.domain.profile import ProfileSnapshot
from consistency_tracker.services.content import ContentGenerator, default_challenge
from consistency_tracker.services.single_flight import SingleFlight

_logger = logging.getLogger(__name__)

TaskFactory = Callable[[ChallengeArtifact], Awaitable[str] | str]


class ChallengeRepository(Protocol):
    """Persistence interface for daily challenges."""

    async def get_challenge(
        self, user_id: str, day_key: date
    ) -> ChallengeArtifact | None:
        """Return the stored challenge for the user and day, if present."""

    async def save_challenge(self, artifact: ChallengeArtifact) -> None:
        """Create or overwrite the challenge for its user and day."""


@dataclass
class ChallengeEngine:
    """Owns one user's challenge for the current day.

    Generation and task linking run under a single-flight keyed on
    (user, day), so concurrent triggers share one generator or factory call.
    An artifact from an earlier day is treated as absent on the next access.
    """

    user_id: str
    repository: ChallengeRepository
    generator: ContentGenerator
    clock: Clock
    single_flight: SingleFlight = field(default_factory=SingleFlight)
    rng: random.Random = field(default_factory=random.Random)
    _artifact: ChallengeArtifact | None = field(default=None, init=False)
    _completion_callbacks: list[Callable[[ChallengeArtifact], None]] = field(
        default_factory=list, init=False
    )

    @property
    def current(self) -> ChallengeArtifact | None:
        """Return today's challenge if it is loaded, without any I/O."""
        return self._current_for(self.clock.today())

    @property
    def state(self) -> ChallengeState:
        """Return the lifecycle state for today."""
        today = self.clock.today()
        if self.single_flight.in_flight(self._generation_key(today)):
            return ChallengeState.GENERATING
        if self._current_for(today) is not None:
            return ChallengeState.READY
        return ChallengeState.ABSENT

    def on_completed(
        self, callback: Callable[[ChallengeArtifact], None]
    ) -> Callable[[], None]:
        """Register for the one-time completion signal."""
        self._completion_callbacks.append(callback)

        def remove() -> None:
            if callback in self._completion_callbacks:
                self._completion_callbacks.remove(callback)

        return remove

    async def load_or_generate_today(
        self, profile: ProfileSnapshot
    ) -> ChallengeArtifact:
        """Return today's challenge, generating it at most once."""
        self._check_owner(profile)
        today = self.clock.today()
        current = self._current_for(today)
        if current is not None:
            return current

        artifact = await self.single_flight.run(
            self._generation_key(today),
            lambda: self._load_or_generate(profile, today),
        )
        self._adopt(artifact)
        return artifact

    async def refresh(self, profile: ProfileSnapshot) -> ChallengeArtifact:
        """Replace today's challenge with a newly generated one."""
        self._check_owner(profile)
        today = self.clock.today()
        current = self._current_for(today) or await self._get_stored(today)
        if current is not None and current.locked:
            raise ChallengeLocked(
                "Completed challenges cannot be refreshed",
                user_id=self.user_id,
                day_key=today,
                operation="challenge.refresh",
            )
        key = self._generation_key(today)
        if self.single_flight.in_flight(key):
            raise GenerationInProgress(
                "A challenge is already being generated",
                user_id=self.user_id,
                day_key=today,
                operation="challenge.refresh",
            )
        artifact = await self.single_flight.run(
            key, lambda: self._generate(profile, today, "challenge.refresh")
        )
        self._adopt(artifact)
        return artifact

    async def mark_completed(self) -> ChallengeArtifact | None:
        """Mark today's challenge completed, signalling listeners once."""
        today = self.clock.today()
        current = self._current_for(today)
        if current is None:
            _logger.warning("No challenge to complete: user_id=%s", self.user_id)
            return None
        if current.completed and current.toast_shown:
            return current

        # toast_shown survives un-completion, so a re-completion is saved
        # without signalling again.
        first_signal = not current.toast_shown
        updated = replace(
            current,
            completed=True,
            locked=True,
            toast_shown=True,
            completed_at=(
                current.completed_at if current.completed else self.clock.now()
            ),
        )
        self._artifact = updated
        try:
            await self._save(updated, "challenge.complete")
        except StoreUnavailable:
            if self._artifact is updated:
                self._artifact = current
            raise
        _logger.info("Challenge completed: user_id=%s day=%s", self.user_id, today)
        if first_signal:
            self._signal_completed(updated)
        return updated

    async def link_to_task(self, factory: TaskFactory) -> str:
        """Add today's challenge to the task list, creating the task at most once."""
        today = self.clock.today()
        current = self._current_for(today)
        if current is None:
            raise ChallengeNotReady(
                "No challenge to add to tasks",
                user_id=self.user_id,
                day_key=today,
                operation="challenge.link",
            )
        if current.linked_task_id is not None:
            return current.linked_task_id

        task_id = await self.single_flight.run(
            ("link", self.user_id, today), lambda: self._link(current, factory)
        )
        latest = self._artifact
        if latest is not None and latest.id == current.id:
            self._artifact = replace(latest, linked_task_id=task_id)
        return task_id

    async def sync_task_completion(
        self, task_id: str, completed: bool
    ) -> ChallengeArtifact | None:
        """Apply a completion change of the linked task to the challenge."""
        current = self.current
        if current is None or current.linked_task_id != task_id:
            return None
        if completed:
            return await self.mark_completed()
        if not current.completed:
            return current
        # The lock stays so an undone task cannot reopen a finished challenge.
        updated = replace(current, completed=False)
        await self._save(updated, "challenge.uncomplete")
        self._artifact = updated
        return updated

    async def handle_task_deleted(self, task_id: str) -> ChallengeArtifact | None:
        """Unlink the challenge from a deleted task, keeping its completion."""
        current = self.current
        if current is None or current.linked_task_id != task_id:
            return None
        updated = replace(current, linked_task_id=None)
        await self._save(updated, "challenge.unlink")
        self._artifact = updated
        return updated

    def is_task_current_challenge(self, task_id: str) -> bool:
        """Return True if the task is linked to today's challenge."""
        current = self.current
        return current is not None and current.linked_task_id == task_id

    def reset(self) -> None:
        """Forget the cached challenge, e.g. on logout."""
        self._artifact = None

    async def _load_or_generate(
        self, profile: ProfileSnapshot, day: date
    ) -> ChallengeArtifact:
        stored = await self._get_stored(day)
        if stored is not None:
            _logger.info(
                "Loaded stored challenge: user_id=%s day=%s", self.user_id, day
            )
            return stored
        return await self._generate(profile, day, "challenge.generate")

    async def _generate(
        self, profile: ProfileSnapshot, day: date, operation: str
    ) -> ChallengeArtifact:
        if profile.has_minimum_data_for_challenge():
            try:
                draft = await self.generator.generate_challenge(profile, day)
            except Exception as exc:
                _logger.warning(
                    "Challenge generation failed: user_id=%s day=%s: %s",
                    self.user_id,
                    day,
                    exc,
                )
                raise GenerationFailed(
                    "Challenge generation failed",
                    user_id=self.user_id,
                    day_key=day,
                    operation=operation,
                ) from exc
        else:
            draft = default_challenge(self.rng)
            _logger.info("Using default challenge: user_id=%s", self.user_id)
        artifact = _artifact_from_draft(self.user_id, day, draft)
        await self._save(artifact, operation)
        return artifact

    async def _link(self, artifact: ChallengeArtifact, factory: TaskFactory) -> str:
        stored = await self._get_stored(artifact.day_key)
        if (
            stored is not None
            and stored.id == artifact.id
            and stored.linked_task_id is not None
        ):
            return stored.linked_task_id

        created = factory(artifact)
        if inspect.isawaitable(created):
            created = await created
        task_id = str(created)

        # A refresh or completion may have landed while the task was created.
        latest = self._artifact
        if latest is None or latest.id != artifact.id:
            latest = await self._get_stored(artifact.day_key)
        if latest is None or latest.id != artifact.id:
            _logger.info(
                "Challenge replaced before link: user_id=%s task_id=%s",
                self.user_id,
                task_id,
            )
            return task_id
        await self._save(replace(latest, linked_task_id=task_id), "challenge.link")
        _logger.info("Challenge linked: user_id=%s task_id=%s", self.user_id, task_id)
        return task_id

    async def _get_stored(self, day: date) -> ChallengeArtifact | None:
        try:
            return await self.repository.get_challenge(self.user_id, day)
        except Exception as exc:
            raise StoreUnavailable(
                "Challenge lookup failed",
                user_id=self.user_id,
                day_key=day,
                operation="challenge.load",
            ) from exc

    async def _save(self, artifact: ChallengeArtifact, operation: str) -> None:
        try:
            await self.repository.save_challenge(artifact)
        except Exception as exc:
            raise StoreUnavailable(
                "Challenge save failed",
                user_id=self.user_id,
                day_key=artifact.day_key,
                operation=operation,
            ) from exc

    def _signal_completed(self, artifact: ChallengeArtifact) -> None:
        for callback in list(self._completion_callbacks):
            try:
                callback(artifact)
            except Exception:
                _logger.exception("Completion listener failed")

    def _adopt(self, artifact: ChallengeArtifact) -> None:
        if artifact.day_key == self.clock.today():
            self._artifact = artifact

    def _current_for(self, today: date) -> ChallengeArtifact | None:
        artifact = self._artifact
        if artifact is None or artifact.day_key != today:
            return None
        return artifact

    def _generation_key(self, day: date) -> tuple[str, str, date]:
        return ("generate", self.user_id, day)

    def _check_owner(self, profile: ProfileSnapshot) -> None:
        if profile.user_id != self.user_id:
            raise ValueError(
                f"Profile for {profile.user_id} given to engine for {self.user_id}"
            )


def _artifact_from_draft(
    user_id: str, day: date, draft: ChallengeDraft
) -> ChallengeArtifact:
    return ChallengeArtifact(
        id=uuid4(),
        user_id=user_id,
        day_key=day,
        title=draft.title,
        subtitle=draft.subtitle,
        emoji=draft.emoji,
        kind=draft.kind,
        target_value=draft.target_value,
    )
