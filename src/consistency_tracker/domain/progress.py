"""Domain models for goal progress."""

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime

MIN_BUFFER_DAYS = 3
BUFFER_RATIO = 0.1


def default_buffer_days(target_days: int) -> int:
    """Return the missed-day allowance for a goal length."""
    return max(MIN_BUFFER_DAYS, math.floor(target_days * BUFFER_RATIO + 0.5))


def required_for_full_credit(target_days: int, buffer_days: int) -> int:
    """Return the completed days that count as full progress."""
    return max(target_days - buffer_days, 1)


def calculate_fraction(
    completed_days: int, target_days: int, buffer_days: int
) -> float:
    """Return the progress fraction clamped to [0, 1]."""
    fraction = completed_days / required_for_full_credit(target_days, buffer_days)
    return min(1.0, max(0.0, fraction))


@dataclass(frozen=True)
class GoalSpec:
    """Goal parameters used for one progress computation.

    ``buffer_days`` defaults to a value derived from ``target_days``; an explicit
    value is kept when the target changes.
    """

    start_date: date
    target_days: int
    buffer_days: int | None = None
    buffer_overridden: bool = field(init=False, compare=False)

    def __post_init__(self) -> None:
        if self.target_days <= 0:
            raise ValueError("target_days must be positive")
        object.__setattr__(self, "buffer_overridden", self.buffer_days is not None)
        if self.buffer_days is None:
            object.__setattr__(
                self, "buffer_days", default_buffer_days(self.target_days)
            )
        elif self.buffer_days < 0:
            raise ValueError("buffer_days must not be negative")

    def with_target_days(self, target_days: int) -> "GoalSpec":
        """Return a copy for a new target, recomputing a derived buffer."""
        if self.buffer_overridden:
            return replace(self, target_days=target_days)
        return replace(self, target_days=target_days, buffer_days=None)

    @property
    def allowance(self) -> int:
        """Missed days tolerated without lowering the fraction."""
        return self.buffer_days or 0

    @property
    def required_for_full_credit(self) -> int:
        """Completed days needed for a full progress fraction."""
        return required_for_full_credit(self.target_days, self.allowance)


@dataclass(frozen=True)
class CompletionRecord:
    """Completion state of one user for one calendar day."""

    user_id: str
    day_key: date
    completed: bool
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ProgressResult:
    """Derived progress snapshot rendered by the presentation layer."""

    completed_days: int
    elapsed_days: int
    target_days: int
    fraction: float

    @classmethod
    def zero(cls, target_days: int = 0) -> "ProgressResult":
        """Return the empty result used when progress cannot be computed."""
        return cls(
            completed_days=0, elapsed_days=0, target_days=target_days, fraction=0.0
        )
