"""Port interface for the durable profile table."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from qualifind.foundation.domain.profile import Profile


@runtime_checkable
class ProfileStorePort(Protocol):
    """Port for profile persistence keyed by principal id.

    Not guaranteed to hold a row immediately after a credential store signup.
    """

    async def get(self, profile_id: str) -> Profile | None:
        """Fetch a profile, or None if no row exists."""
        ...

    async def insert(self, profile: Profile) -> bool:
        """Insert a profile. Idempotent on duplicate primary key.

        Returns:
            True if a row was created, False if one already existed.
        """
        ...

    async def update(self, profile_id: str, changes: Mapping[str, Any]) -> None:
        """Apply a partial update.

        Raises:
            NotFoundError: If the profile does not exist.
        """
        ...
