"""Port interface for the invitation registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from qualifind.foundation.domain.invitation import Invitation


@runtime_checkable
class InvitationRegistryPort(Protocol):
    """Port for invitation lookup and guarded status transitions.

    Both transitions are conditional updates. At-most-once redemption relies
    entirely on ``conditional_accept`` being atomic in the store.
    """

    async def find_by_code(self, code: str) -> Invitation | None:
        """Look up an invitation by redemption code."""
        ...

    async def conditional_accept(self, code: str, now: datetime) -> bool:
        """Move ``pending -> accepted`` if still pending and unexpired at ``now``.

        Returns:
            True if this call performed the transition.
        """
        ...

    async def mark_expired(self, code: str, now: datetime) -> bool:
        """Move ``pending -> expired`` if the expiry has passed at ``now``.

        Returns:
            True if this call performed the transition.
        """
        ...
