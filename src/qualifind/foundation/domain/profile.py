"""Profile record binding a principal to a role and organization.

The profile id equals the principal id (1:1). A principal may exist briefly
without a profile; ``Profile.from_principal`` builds the repair record used
to close that gap.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from qualifind.foundation.domain.user_value_objects import Role

if TYPE_CHECKING:
    from datetime import datetime

    from qualifind.foundation.domain.principal import Principal

# Columns the engine may change after creation.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {"display_name", "organization", "email_verified", "last_sign_in"}
)


@dataclass(frozen=True, slots=True)
class Profile:
    """Application-level identity record.

    Attributes:
        id: Principal id (primary key).
        email: Contact email.
        display_name: Human-readable name.
        role: Contractor or subcontractor.
        organization: Company name, may be empty.
        email_verified: Whether the principal confirmed its email.
        created_at: Creation timestamp (UTC).
        last_sign_in: Last successful sign-in (UTC), None until the first one.
        invited_by: Id of the contractor whose invitation was redeemed, if any.
    """

    id: str
    email: str
    display_name: str
    role: Role
    organization: str
    email_verified: bool
    created_at: datetime
    last_sign_in: datetime | None = None
    invited_by: str | None = None

    @classmethod
    def from_principal(
        cls,
        principal: Principal,
        fallback_role: Role,
        now: datetime,
    ) -> Profile:
        """Synthesize a profile from a principal's stored metadata.

        Fallback chains:
            role: metadata role -> ``fallback_role``
            display_name: metadata name -> email local part -> "User"
            organization: metadata organization -> ""

        Args:
            principal: Principal whose profile row is missing.
            fallback_role: Role to use when metadata carries none.
            now: Creation timestamp.

        Returns:
            New unsaved Profile.
        """
        metadata = principal.metadata
        if metadata.name:
            display_name = metadata.name
        elif principal.email:
            display_name = principal.email.split("@")[0]
        else:
            display_name = "User"

        return cls(
            id=principal.id,
            email=principal.email,
            display_name=display_name,
            role=metadata.role or fallback_role,
            organization=metadata.organization or "",
            email_verified=principal.email_verified,
            created_at=now,
        )
