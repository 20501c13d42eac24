"""Qualifind Domain Identity Infrastructure -- store adapters."""

from qualifind.domain.identity.infrastructure.in_memory import (
    InMemoryCredentialStore,
    InMemoryInvitationRegistry,
    InMemoryProfileStore,
    OutboundEmail,
    StaticPermissionChecker,
)
from qualifind.domain.identity.infrastructure.invitation_repository import (
    SqlInvitationRepository,
)
from qualifind.domain.identity.infrastructure.permission_repository import (
    SqlPermissionChecker,
)
from qualifind.domain.identity.infrastructure.profile_repository import (
    SqlProfileRepository,
)

__all__ = [
    "InMemoryCredentialStore",
    "InMemoryInvitationRegistry",
    "InMemoryProfileStore",
    "OutboundEmail",
    "SqlInvitationRepository",
    "SqlPermissionChecker",
    "SqlProfileRepository",
    "StaticPermissionChecker",
]
