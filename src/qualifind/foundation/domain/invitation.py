"""Invitation records issued by contractors to prospective subcontractors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from qualifind.foundation.domain.invitation_value_objects import InvitationStatus

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True)
class Invitation:
    """Outstanding offer from a contractor.

    Attributes:
        id: Invitation identifier.
        email: Target email address.
        contractor_id: Profile id of the issuing contractor.
        contractor_name: Display name of the issuing contractor.
        code: Redemption code.
        status: Current lifecycle state.
        created_at: Issue timestamp (UTC).
        expires_at: Expiry timestamp (UTC); None never expires.
    """

    id: str
    email: str
    contractor_id: str
    contractor_name: str
    code: str
    status: InvitationStatus
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        """True once the expiry timestamp has been reached."""
        return self.expires_at is not None and self.expires_at <= now

    def to_record(self) -> InvitationRecord:
        return InvitationRecord(
            invitation_id=self.id,
            email=self.email,
            contractor_id=self.contractor_id,
            contractor_name=self.contractor_name,
        )


@dataclass(frozen=True, slots=True)
class InvitationRecord:
    """Provenance returned by a successful redemption or preview.

    Attributes:
        invitation_id: Redeemed invitation id.
        email: Email the invitation was sent to.
        contractor_id: Issuing contractor's profile id.
        contractor_name: Issuing contractor's display name.
    """

    invitation_id: str
    email: str
    contractor_id: str
    contractor_name: str
