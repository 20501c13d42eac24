"""Invitation redemption: the one-time ``pending -> accepted`` transition.

Flow:
1. Fast-path: reject codes under the minimum length (no registry round-trip)
2. Lookup by code; reject unknown, accepted or expired invitations
3. Lazy expiry: a pending invitation past its expiry is marked expired
4. Guarded accept: the registry's conditional update decides races
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from qualifind.foundation.domain.exceptions import (
    InvalidInvitationError,
    StoreUnavailableError,
)
from qualifind.foundation.domain.invitation_value_objects import (
    DEFAULT_INVITATION_CODE_MIN_LENGTH,
    InvitationCode,
    InvitationStatus,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from qualifind.foundation.domain.invitation import Invitation, InvitationRecord
    from qualifind.foundation.domain.ports import InvitationRegistryPort

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class InvitationRedeemer:
    """Validates and redeems invitation codes exactly once.

    No application-level locking: when two callers race on one code, the
    registry's conditional update lets exactly one of them through and the
    other observes ``InvalidInvitationError``.

    Attributes:
        _registry: Invitation registry adapter.
        _min_length: Minimum accepted code length.
        _clock: Returns the current UTC time.
    """

    def __init__(
        self,
        registry: InvitationRegistryPort,
        *,
        min_length: int = DEFAULT_INVITATION_CODE_MIN_LENGTH,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._registry = registry
        self._min_length = min_length
        self._clock = clock

    async def preview(self, code: str) -> InvitationRecord:
        """Validate a code without consuming it.

        Args:
            code: Redemption code as typed by the user.

        Returns:
            Provenance of the pending invitation.

        Raises:
            InvalidInvitationError: Malformed, unknown, used or expired code.
            StoreUnavailableError: If the registry cannot be reached.
        """
        invitation = await self._load_pending(code)
        return invitation.to_record()

    async def redeem(self, code: str) -> InvitationRecord:
        """Transition a pending invitation to accepted.

        Args:
            code: Redemption code as typed by the user.

        Returns:
            Provenance of the redeemed invitation (issuing contractor).

        Raises:
            InvalidInvitationError: Malformed, unknown, used or expired code,
                or the guarded update lost a race.
            StoreUnavailableError: If the registry cannot be reached.
        """
        invitation = await self._load_pending(code)

        if not await self._registry.conditional_accept(invitation.code, self._clock()):
            logger.warning(
                "invitation_redemption_lost_race",
                extra={"invitation_id": invitation.id},
            )
            raise self._invalid("already_used", invitation.code)

        logger.info(
            "invitation_redeemed",
            extra={
                "invitation_id": invitation.id,
                "contractor_id": invitation.contractor_id,
            },
        )
        return invitation.to_record()

    async def _load_pending(self, raw_code: str) -> Invitation:
        try:
            code = InvitationCode(raw_code, min_length=self._min_length).value
        except ValueError as err:
            raise self._invalid("malformed", raw_code.strip()) from err

        invitation = await self._registry.find_by_code(code)
        if invitation is None:
            raise self._invalid("not_found", code)
        if invitation.status == InvitationStatus.ACCEPTED:
            raise self._invalid("already_used", code)
        if invitation.status == InvitationStatus.EXPIRED:
            raise self._invalid("expired", code)

        now = self._clock()
        if invitation.is_expired(now):
            await self._expire(invitation, now)
            raise self._invalid("expired", code)
        return invitation

    async def _expire(self, invitation: Invitation, now: datetime) -> None:
        """Record the lazy ``pending -> expired`` transition (best-effort)."""
        try:
            await self._registry.mark_expired(invitation.code, now)
        except StoreUnavailableError:
            logger.warning(
                "invitation_expiry_not_recorded",
                extra={"invitation_id": invitation.id},
                exc_info=True,
            )

    def _invalid(self, reason: str, code: str) -> InvalidInvitationError:
        return InvalidInvitationError(reason, min_length=self._min_length, code=code)
