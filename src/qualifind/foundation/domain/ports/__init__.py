"""Domain port interfaces for hexagonal architecture.

Ports define abstract interfaces that the identity core uses to interact
with its collaborators. Implementations (adapters) live in infrastructure.
"""

from qualifind.foundation.domain.ports.credential_store import (
    CredentialStorePort,
    SessionListener,
    Unsubscribe,
)
from qualifind.foundation.domain.ports.invitation_registry import InvitationRegistryPort
from qualifind.foundation.domain.ports.permission_checker import PermissionCheckerPort
from qualifind.foundation.domain.ports.profile_store import ProfileStorePort

__all__ = [
    "CredentialStorePort",
    "InvitationRegistryPort",
    "PermissionCheckerPort",
    "ProfileStorePort",
    "SessionListener",
    "Unsubscribe",
]
