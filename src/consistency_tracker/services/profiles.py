"""Profile lookup for engine sessions."""

from typing import Protocol

from consistency_tracker.domain.profile import ProfileSnapshot


class ProfileRepository(Protocol):
    """Persistence interface for user profiles."""

    async def get_profile(self, user_id: str) -> ProfileSnapshot | None:
        """Return the user's profile snapshot, if present."""
