"""Tests for challenge content generation."""

import asyncio
import random
from datetime import date

from consistency_tracker.domain.challenges import ChallengeDraft, ChallengeKind
from consistency_tracker.services.content import (
    CHALLENGE_INSTRUCTIONS,
    CHALLENGE_SCHEMA,
    ChallengeContentService,
    build_challenge_prompt,
    default_challenge,
)
from tests.conftest import FakeChallengeClient


def test_content_service_returns_validated_draft(profile) -> None:
    client = FakeChallengeClient()
    service = ChallengeContentService(
        client=client, model="gpt-5.2", reasoning_effort="low", store=False
    )

    draft = asyncio.run(service.generate_challenge(profile, date(2026, 1, 20)))

    assert draft.title == "Drink 8 glasses of water"
    assert draft.kind is ChallengeKind.DIET
    assert draft.target_value == 8
    assert "Age: 30" in client.prompts[0]
    assert client.instructions == [CHALLENGE_INSTRUCTIONS]


def test_unknown_kind_falls_back_to_fitness() -> None:
    draft = ChallengeDraft.model_validate(
        {
            "title": "Stretch",
            "subtitle": "Ten minutes",
            "emoji": "🧘",
            "kind": "Yoga",
            "target_value": 10,
        }
    )

    assert draft.kind is ChallengeKind.FITNESS


def test_kind_is_case_insensitive() -> None:
    draft = ChallengeDraft.model_validate(
        {
            "title": "Breathe",
            "subtitle": "Box breathing",
            "emoji": "🌬️",
            "kind": "MINDFULNESS",
            "target_value": 5,
        }
    )

    assert draft.kind is ChallengeKind.MINDFULNESS


def test_prompt_lists_only_known_fields(profile) -> None:
    prompt = build_challenge_prompt(profile, date(2026, 1, 20))

    assert "Height: 180 cm" in prompt
    assert "Weight: 80 kg" in prompt
    assert "Lifestyle" not in prompt
    assert "Tuesday, January 20" in prompt


def test_default_challenge_rounds_steps() -> None:
    rng = random.Random(3)

    drafts = [default_challenge(rng) for _ in range(20)]

    assert all(draft.target_value % 500 == 0 for draft in drafts)
    assert all(5000 <= draft.target_value <= 15000 for draft in drafts)
    assert all(draft.kind is ChallengeKind.FITNESS for draft in drafts)


def test_schema_requires_every_field() -> None:
    assert set(CHALLENGE_SCHEMA["required"]) == set(CHALLENGE_SCHEMA["properties"])
