"""Qualifind Foundation Domain -- pure Python identity primitives.

Exceptions, value objects, principal/profile/invitation records and the
port interfaces implemented by infrastructure adapters.
"""

from qualifind.foundation.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    InvalidCredentialsError,
    InvalidInvitationError,
    NotFoundError,
    RoleMismatchError,
    SignupRejectedError,
    StoreUnavailableError,
    ValidationError,
)
from qualifind.foundation.domain.invitation import Invitation, InvitationRecord
from qualifind.foundation.domain.invitation_value_objects import (
    DEFAULT_INVITATION_CODE_MIN_LENGTH,
    InvitationCode,
    InvitationStatus,
)
from qualifind.foundation.domain.ports import (
    CredentialStorePort,
    InvitationRegistryPort,
    PermissionCheckerPort,
    ProfileStorePort,
)
from qualifind.foundation.domain.principal import Principal, PrincipalMetadata, SessionEvent
from qualifind.foundation.domain.profile import Profile
from qualifind.foundation.domain.user_value_objects import DisplayName, Email, Role

__all__ = [
    "DEFAULT_INVITATION_CODE_MIN_LENGTH",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "CredentialStorePort",
    "DisplayName",
    "DomainError",
    "Email",
    "InvalidCredentialsError",
    "InvalidInvitationError",
    "Invitation",
    "InvitationCode",
    "InvitationRecord",
    "InvitationRegistryPort",
    "InvitationStatus",
    "NotFoundError",
    "PermissionCheckerPort",
    "Principal",
    "PrincipalMetadata",
    "Profile",
    "ProfileStorePort",
    "Role",
    "RoleMismatchError",
    "SessionEvent",
    "SignupRejectedError",
    "StoreUnavailableError",
    "ValidationError",
]
