"""Error taxonomy for the consistency engines."""

from datetime import date


class EngineError(Exception):
    """Base error carrying the context a caller needs to log and report."""

    def __init__(
        self,
        message: str,
        *,
        user_id: str | None = None,
        day_key: date | None = None,
        operation: str | None = None,
    ) -> None:
        self.user_id = user_id
        self.day_key = day_key
        self.operation = operation
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        context = [
            f"{name}={value}"
            for name, value in (
                ("operation", self.operation),
                ("user_id", self.user_id),
                ("day_key", self.day_key),
            )
            if value is not None
        ]
        if not context:
            return message
        return f"{message} ({', '.join(context)})"


class InsufficientData(EngineError):
    """The profile lacks the fields an engine needs."""


class StoreUnavailable(EngineError):
    """A storage query or write failed."""


class GenerationFailed(EngineError):
    """The content generator failed to produce a challenge."""


class RaceDiscarded(EngineError):
    """A superseded computation finished and its result was dropped."""


class GenerationInProgress(EngineError):
    """A challenge is already being generated for this day."""


class ChallengeLocked(EngineError):
    """The challenge was completed and can no longer be replaced."""


class ChallengeNotReady(EngineError):
    """No challenge exists yet for the current day."""
