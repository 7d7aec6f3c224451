"""Task-list snapshots used to settle a day."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class TaskSnapshot:
    """A task scheduled on a calendar day."""

    id: str
    day_key: date
    done: bool
