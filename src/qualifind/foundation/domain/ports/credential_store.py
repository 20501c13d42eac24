"""Port interface for the credential store.

The credential store owns password verification, session issuance and the
email-verification / password-reset token lifecycles. The identity core
treats it as an opaque authority.

Example:
    >>> from qualifind.foundation.domain.ports import CredentialStorePort
    >>> async def who_is_signed_in(store: CredentialStorePort) -> str | None:
    ...     principal = await store.current_session()
    ...     return principal.email if principal else None
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from qualifind.foundation.domain.principal import (
        Principal,
        PrincipalMetadata,
        SessionEvent,
    )

SessionListener = Callable[["SessionEvent", "Principal | None"], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class CredentialStorePort(Protocol):
    """Port for authentication and session lifecycle.

    Implementations emit a session-change event to every subscriber whenever
    the current session changes (sign in, sign out, user update). Listeners
    are plain callables and must not block.
    """

    async def verify(self, email: str, password: str) -> Principal:
        """Check credentials and establish a session.

        Raises:
            InvalidCredentialsError: If the email/password pair is rejected.
            StoreUnavailableError: On transport or provider failure.
        """
        ...

    async def create(
        self,
        email: str,
        password: str,
        metadata: PrincipalMetadata,
    ) -> Principal:
        """Create a principal with denormalised profile metadata.

        Raises:
            SignupRejectedError: Duplicate email, weak password, etc.
            StoreUnavailableError: On transport or provider failure.
        """
        ...

    async def invalidate_session(self) -> None:
        """Sign out the current session."""
        ...

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        """Register a session-change listener.

        Returns:
            Callable that removes the listener.
        """
        ...

    async def current_session(self) -> Principal | None:
        """Return the principal of the persisted session, if any."""
        ...

    async def request_email_verification(self, email: str) -> None:
        """(Re)send the sign-up confirmation email."""
        ...

    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        """Send a password reset link."""
        ...

    async def update_password(self, new_password: str) -> None:
        """Change the password of the currently signed-in principal.

        Raises:
            AuthenticationError: If no session is active.
        """
        ...
