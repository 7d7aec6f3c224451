"""Profile snapshot consumed by the engines."""

from dataclasses import dataclass, fields
from datetime import date
from enum import StrEnum

from consistency_tracker.domain.errors import InsufficientData
from consistency_tracker.domain.progress import GoalSpec


class ProfileField(StrEnum):
    """Profile fields whose changes are broadcast on the event bus."""

    GOAL = "goal"
    GOAL_START_DATE = "goal_start_date"
    TARGET_DAYS = "target_days"
    BUFFER_DAYS = "buffer_days"
    HEIGHT = "height"
    WEIGHT = "weight"
    AGE = "age"
    GENDER = "gender"
    LIFESTYLE = "lifestyle"
    DAILY_CALORIES = "daily_calories"
    DAILY_PROTEIN = "daily_protein"
    TARGET_WEIGHT_LOSS = "target_weight_loss"
    USERNAME = "username"
    AVATAR = "avatar"


# Maps snapshot attributes to the field they belong to.
_ATTRIBUTE_FIELDS: dict[str, ProfileField] = {
    "goal": ProfileField.GOAL,
    "goal_start_date": ProfileField.GOAL_START_DATE,
    "target_days": ProfileField.TARGET_DAYS,
    "buffer_days": ProfileField.BUFFER_DAYS,
    "height_value": ProfileField.HEIGHT,
    "height_unit": ProfileField.HEIGHT,
    "weight_value": ProfileField.WEIGHT,
    "weight_unit": ProfileField.WEIGHT,
    "age": ProfileField.AGE,
    "gender": ProfileField.GENDER,
    "lifestyle": ProfileField.LIFESTYLE,
    "daily_calories": ProfileField.DAILY_CALORIES,
    "daily_protein": ProfileField.DAILY_PROTEIN,
    "target_weight_loss_value": ProfileField.TARGET_WEIGHT_LOSS,
    "target_weight_loss_unit": ProfileField.TARGET_WEIGHT_LOSS,
    "username": ProfileField.USERNAME,
    "avatar_name": ProfileField.AVATAR,
}

PROGRESS_FIELDS = frozenset(
    {
        ProfileField.GOAL,
        ProfileField.GOAL_START_DATE,
        ProfileField.TARGET_DAYS,
        ProfileField.BUFFER_DAYS,
        ProfileField.HEIGHT,
        ProfileField.WEIGHT,
        ProfileField.AGE,
        ProfileField.GENDER,
        ProfileField.LIFESTYLE,
        ProfileField.DAILY_CALORIES,
        ProfileField.DAILY_PROTEIN,
        ProfileField.TARGET_WEIGHT_LOSS,
    }
)


@dataclass(frozen=True)
class ProfileSnapshot:
    """Immutable copy of the profile fields the engines read."""

    user_id: str
    goal: str | None = None
    goal_start_date: date | None = None
    target_days: int | None = None
    buffer_days: int | None = None
    height_value: float | None = None
    height_unit: str | None = None
    weight_value: float | None = None
    weight_unit: str | None = None
    age: int | None = None
    gender: str | None = None
    lifestyle: str | None = None
    daily_calories: int | None = None
    daily_protein: int | None = None
    target_weight_loss_value: float | None = None
    target_weight_loss_unit: str | None = None
    username: str | None = None
    avatar_name: str | None = None

    def has_minimum_data_for_progress(self) -> bool:
        """Return True when the goal can be measured."""
        if not self.goal or self.goal_start_date is None:
            return False
        if self.target_days is None or self.target_days <= 0:
            return False
        if self.goal == "lose_weight":
            return self.target_weight_loss_value is not None
        if self.goal == "keep_healthy":
            return self.daily_calories is not None
        if self.goal == "gain_muscle":
            return self.daily_protein is not None
        return False

    def has_minimum_data_for_challenge(self) -> bool:
        """Return True when a personalised challenge can be generated."""
        return (
            self.height_value is not None
            and self.weight_value is not None
            and self.age is not None
            and self.gender is not None
        )

    def goal_spec(self) -> GoalSpec | None:
        """Return the goal for progress, or None if the profile lacks one."""
        if not self.has_minimum_data_for_progress():
            return None
        return GoalSpec(
            start_date=self.goal_start_date,
            target_days=self.target_days,
            buffer_days=self.buffer_days,
        )

    def require_goal_spec(self) -> GoalSpec:
        """Return the goal for progress, raising InsufficientData if it is missing."""
        goal = self.goal_spec()
        if goal is None:
            raise InsufficientData(
                "Profile has no usable goal",
                user_id=self.user_id,
                operation="progress.goal",
            )
        return goal

    def changed_fields(self, other: "ProfileSnapshot") -> set[ProfileField]:
        """Return the profile fields that differ between two snapshots."""
        changed: set[ProfileField] = set()
        for item in fields(self):
            if item.name == "user_id":
                continue
            if getattr(self, item.name) != getattr(other, item.name):
                changed.add(_ATTRIBUTE_FIELDS[item.name])
        return changed
