"""HTTP payloads for the engine API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from consistency_tracker.domain.challenges import (
    ChallengeArtifact,
    ChallengeKind,
    ChallengeState,
)
from consistency_tracker.domain.progress import CompletionRecord, ProgressResult


class ProgressResponse(BaseModel):
    """Published goal progress for a user."""

    user_id: str
    completed_days: int
    elapsed_days: int
    target_days: int
    fraction: float
    stale: bool = False
    advisory: str | None = None

    @classmethod
    def from_result(
        cls, user_id: str, result: ProgressResult, advisory: str | None = None
    ) -> "ProgressResponse":
        return cls(
            user_id=user_id,
            completed_days=result.completed_days,
            elapsed_days=result.elapsed_days,
            target_days=result.target_days,
            fraction=result.fraction,
            stale=advisory is not None,
            advisory=advisory,
        )


class CompletionRequest(BaseModel):
    completed: bool


class CompletionResponse(BaseModel):
    user_id: str
    day_key: date
    completed: bool
    completed_at: datetime | None = None

    @classmethod
    def from_record(cls, record: CompletionRecord) -> "CompletionResponse":
        return cls(
            user_id=record.user_id,
            day_key=record.day_key,
            completed=record.completed,
            completed_at=record.completed_at,
        )


class ChallengeResponse(BaseModel):
    """Today's challenge as shown to the presentation layer."""

    id: UUID
    day_key: date
    title: str
    subtitle: str
    emoji: str
    kind: ChallengeKind
    target_value: int
    completed: bool
    locked: bool
    linked_task_id: str | None = None
    completed_at: datetime | None = None
    state: ChallengeState = ChallengeState.READY

    @classmethod
    def from_artifact(cls, artifact: ChallengeArtifact) -> "ChallengeResponse":
        return cls(
            id=artifact.id,
            day_key=artifact.day_key,
            title=artifact.title,
            subtitle=artifact.subtitle,
            emoji=artifact.emoji,
            kind=artifact.kind,
            target_value=artifact.target_value,
            completed=artifact.completed,
            locked=artifact.locked,
            linked_task_id=artifact.linked_task_id,
            completed_at=artifact.completed_at,
        )


class LinkRequest(BaseModel):
    task_id: str = Field(min_length=1)


class LinkResponse(BaseModel):
    task_id: str
