"""Domain models for the daily challenge."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ChallengeKind(StrEnum):
    """Category of a daily challenge."""

    FITNESS = "fitness"
    DIET = "diet"
    MINDFULNESS = "mindfulness"
    OTHER = "other"


class ChallengeState(StrEnum):
    """Lifecycle of the challenge for one user and day."""

    ABSENT = "absent"
    GENERATING = "generating"
    READY = "ready"


class ChallengeDraft(BaseModel):
    """Structured challenge content returned by the generator."""

    title: str = Field(min_length=1)
    subtitle: str
    emoji: str
    kind: ChallengeKind = ChallengeKind.FITNESS
    target_value: int = Field(ge=0)

    @field_validator("kind", mode="before")
    @classmethod
    def _fallback_kind(cls, value: object) -> object:
        if isinstance(value, str) and value.lower() in set(ChallengeKind):
            return value.lower()
        return ChallengeKind.FITNESS


@dataclass(frozen=True)
class ChallengeArtifact:
    """Today's challenge for a user, with its completion and link flags."""

    id: UUID
    user_id: str
    day_key: date
    title: str
    subtitle: str
    emoji: str
    kind: ChallengeKind
    target_value: int
    completed: bool = False
    linked_task_id: str | None = None
    toast_shown: bool = False
    locked: bool = False
    completed_at: datetime | None = None

    @property
    def is_linked(self) -> bool:
        """Return True when the challenge was added to the task list."""
        return self.linked_task_id is not None
