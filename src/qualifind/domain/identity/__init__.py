"""Qualifind Domain Identity -- sign-in, registration and invitation onboarding."""

from qualifind.domain.identity.invitation_redemption import InvitationRedeemer
from qualifind.domain.identity.reconciliation import (
    IdentityReconciliationEngine,
    OperationWarning,
    Registration,
    WarningChannel,
)
from qualifind.domain.identity.session_context import SessionContext, SessionState
from qualifind.domain.identity.settings import IdentitySettings, get_identity_settings

__all__ = [
    "IdentityReconciliationEngine",
    "IdentitySettings",
    "InvitationRedeemer",
    "OperationWarning",
    "Registration",
    "SessionContext",
    "SessionState",
    "WarningChannel",
    "get_identity_settings",
]
