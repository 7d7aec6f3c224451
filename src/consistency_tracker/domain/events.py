"""Typed notifications that invalidate engine results."""

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from consistency_tracker.domain.profile import ProfileField


class EventTopic(StrEnum):
    """Topics carried by the event bus."""

    DAY_COMPLETION_CHANGED = "day_completion_changed"
    PROFILE_CHANGED = "profile_changed"


@dataclass(frozen=True)
class DayCompletionChanged:
    """A day's completion record changed for a user."""

    user_id: str
    day_key: date | None = None

    @property
    def topic(self) -> EventTopic:
        return EventTopic.DAY_COMPLETION_CHANGED


@dataclass(frozen=True)
class ProfileChanged:
    """A profile field changed for a user."""

    user_id: str
    field: ProfileField

    @property
    def topic(self) -> EventTopic:
        return EventTopic.PROFILE_CHANGED


EngineEvent = DayCompletionChanged | ProfileChanged
