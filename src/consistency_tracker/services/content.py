"""Daily challenge content generation using LLMs."""

import logging
import random
from dataclasses import dataclass
from datetime import date
from typing import Protocol

from consistency_tracker.domain.challenges import ChallengeDraft, ChallengeKind
from consistency_tracker.domain.profile import ProfileSnapshot

_logger = logging.getLogger(__name__)

CHALLENGE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "subtitle": {"type": "string"},
        "emoji": {"type": "string"},
        "kind": {"type": "string", "enum": [kind.value for kind in ChallengeKind]},
        "target_value": {"type": "integer", "minimum": 0},
    },
    "required": ["title", "subtitle", "emoji", "kind", "target_value"],
    "additionalProperties": False,
}

CHALLENGE_INSTRUCTIONS = (
    "You are a health coach writing one daily challenge for a single user. "
    "The challenge must be completable within the day and measurable by a "
    "single number. Keep the title under six words and the subtitle to one "
    "sentence. Never suggest anything unsafe for the stated age or body."
)

# Step targets by activity level; the default challenge picks one at random.
_STEP_RANGES = ((5000, 7000), (7000, 9000), (9000, 12000), (12000, 15000))
_STEP_ROUNDING = 500


class ChallengeClient(Protocol):
    """Interface for structured LLM text generation."""

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
        """Return structured challenge data."""


class ContentGenerator(Protocol):
    """Produces the content of a day's challenge."""

    async def generate_challenge(
        self, profile: ProfileSnapshot, day_key: date
    ) -> ChallengeDraft:
        """Return a challenge tailored to the profile."""


@dataclass
class ChallengeContentService(ContentGenerator):
    """Service that prepares challenge prompts and validates results."""

    client: ChallengeClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def generate_challenge(
        self, profile: ProfileSnapshot, day_key: date
    ) -> ChallengeDraft:
        """Generate one challenge via the configured client."""
        raw = await self.client.generate(
            model=self.model,
            reasoning_effort=self.reasoning_effort,
            store=self.store,
            schema=CHALLENGE_SCHEMA,
            instructions=CHALLENGE_INSTRUCTIONS,
            prompt=build_challenge_prompt(profile, day_key),
        )
        draft = ChallengeDraft.model_validate(raw)
        _logger.info(
            "Challenge generated: user_id=%s kind=%s", profile.user_id, draft.kind
        )
        return draft


def build_challenge_prompt(profile: ProfileSnapshot, day_key: date) -> str:
    """Describe the user to the model and ask for one achievable challenge."""
    details = [
        ("Goal", profile.goal),
        ("Age", profile.age),
        ("Gender", profile.gender),
        ("Height", _with_unit(profile.height_value, profile.height_unit)),
        ("Weight", _with_unit(profile.weight_value, profile.weight_unit)),
        ("Lifestyle", profile.lifestyle),
        ("Daily calories", profile.daily_calories),
        ("Daily protein (g)", profile.daily_protein),
    ]
    lines = [f"- {label}: {value}" for label, value in details if value is not None]
    return (
        f"Create one daily health challenge for {day_key.strftime('%A, %B %d')}.\n"
        "User profile:\n"
        + "\n".join(lines)
        + "\nReturn a short title, a one-sentence subtitle, a single emoji, "
        "the kind (fitness, diet, mindfulness or other) "
        "and a numeric target value."
    )


def default_challenge(rng: random.Random) -> ChallengeDraft:
    """Return a step-count challenge for users without enough profile data."""
    low, high = rng.choice(_STEP_RANGES)
    steps = rng.randint(low, high) // _STEP_ROUNDING * _STEP_ROUNDING
    return ChallengeDraft(
        title=f"{steps:,} steps",
        subtitle=f"Walk {steps:,} steps today",
        emoji="👟",
        kind=ChallengeKind.FITNESS,
        target_value=steps,
    )


def _with_unit(value: float | None, unit: str | None) -> str | None:
    if value is None:
        return None
    return f"{value:g} {unit}" if unit else f"{value:g}"
