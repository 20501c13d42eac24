"""In-memory adapters for every identity port.

Used for local development (``AUTH_IN_MEMORY=true``) and tests. They follow
the same contracts as the network/SQL adapters: the credential store hashes
passwords with bcrypt and emits session-change events, the profile store
ignores duplicate inserts, and the invitation registry's transitions are
guarded on the current status.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import bcrypt

from qualifind.foundation.domain.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    NotFoundError,
    SignupRejectedError,
)
from qualifind.foundation.domain.invitation_value_objects import InvitationStatus
from qualifind.foundation.domain.principal import Principal, SessionEvent
from qualifind.foundation.domain.profile import UPDATABLE_FIELDS
from qualifind.foundation.domain.user_value_objects import Email

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from qualifind.foundation.domain.invitation import Invitation
    from qualifind.foundation.domain.ports import SessionListener, Unsubscribe
    from qualifind.foundation.domain.principal import PrincipalMetadata
    from qualifind.foundation.domain.profile import Profile

logger = logging.getLogger(__name__)

_DEFAULT_BCRYPT_ROUNDS = 12


@dataclass
class _Account:
    principal: Principal
    password_hash: bytes


@dataclass(frozen=True, slots=True)
class OutboundEmail:
    """Email the in-memory credential store would have sent.

    Attributes:
        kind: "signup" or "recovery".
        email: Recipient.
        redirect_to: Link target, if any.
    """

    kind: str
    email: str
    redirect_to: str | None = None


class InMemoryCredentialStore:
    """Credential store kept in process memory.

    Args:
        password_min_length: Shortest password accepted at signup.
        bcrypt_rounds: bcrypt work factor (lower it in tests).
    """

    def __init__(
        self,
        *,
        password_min_length: int = 6,
        bcrypt_rounds: int = _DEFAULT_BCRYPT_ROUNDS,
    ) -> None:
        self._password_min_length = password_min_length
        self._bcrypt_rounds = bcrypt_rounds
        self._accounts: dict[str, _Account] = {}
        self._session: Principal | None = None
        self._listeners: list[SessionListener] = []
        self.outbox: list[OutboundEmail] = []

    async def verify(self, email: str, password: str) -> Principal:
        account = self._accounts.get(email.strip().lower())
        if account is None or not bcrypt.checkpw(password.encode(), account.password_hash):
            raise InvalidCredentialsError()
        self._set_session(account.principal, SessionEvent.SIGNED_IN)
        return account.principal

    async def create(
        self,
        email: str,
        password: str,
        metadata: PrincipalMetadata,
    ) -> Principal:
        try:
            normalised = Email(email).value
        except ValueError as err:
            raise SignupRejectedError("Unable to validate email address: invalid format") from err
        if normalised in self._accounts:
            raise SignupRejectedError("User already registered")
        if len(password) < self._password_min_length:
            raise SignupRejectedError(
                f"Password should be at least {self._password_min_length} characters."
            )

        principal = Principal(
            id=str(uuid4()),
            email=normalised,
            email_verified=False,
            metadata=metadata,
        )
        self._accounts[normalised] = _Account(principal, self._hash(password))
        logger.debug("in_memory_principal_created", extra={"principal_id": principal.id})
        self._set_session(principal, SessionEvent.SIGNED_IN)
        return principal

    async def invalidate_session(self) -> None:
        self._set_session(None, SessionEvent.SIGNED_OUT)

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def current_session(self) -> Principal | None:
        return self._session

    async def request_email_verification(self, email: str) -> None:
        self.outbox.append(OutboundEmail(kind="signup", email=email.strip().lower()))

    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        # Unknown addresses succeed silently.
        normalised = email.strip().lower()
        if normalised in self._accounts:
            self.outbox.append(
                OutboundEmail(kind="recovery", email=normalised, redirect_to=redirect_to)
            )

    async def update_password(self, new_password: str) -> None:
        if self._session is None:
            raise AuthenticationError(
                "Sign in to change your password.", error_code="NOT_AUTHENTICATED"
            )
        account = self._accounts[self._session.email]
        account.password_hash = self._hash(new_password)
        self._emit(SessionEvent.USER_UPDATED, self._session)

    def confirm_email(self, email: str) -> Principal:
        """Mark an address as verified, as clicking the confirmation link would."""
        account = self._accounts[email.strip().lower()]
        account.principal = dataclasses.replace(account.principal, email_verified=True)
        if self._session is not None and self._session.id == account.principal.id:
            self._set_session(account.principal, SessionEvent.USER_UPDATED)
        return account.principal

    def _hash(self, password: str) -> bytes:
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self._bcrypt_rounds))

    def _set_session(self, principal: Principal | None, event: SessionEvent) -> None:
        self._session = principal
        self._emit(event, principal)

    def _emit(self, event: SessionEvent, principal: Principal | None) -> None:
        for listener in list(self._listeners):
            listener(event, principal)


class InMemoryProfileStore:
    """Profile table kept in a dict keyed by principal id."""

    def __init__(self, profiles: Iterable[Profile] = ()) -> None:
        self._rows: dict[str, Profile] = {profile.id: profile for profile in profiles}

    async def get(self, profile_id: str) -> Profile | None:
        return self._rows.get(profile_id)

    async def insert(self, profile: Profile) -> bool:
        if profile.id in self._rows:
            return False
        self._rows[profile.id] = profile
        return True

    async def update(self, profile_id: str, changes: Mapping[str, Any]) -> None:
        current = self._rows.get(profile_id)
        if current is None:
            raise NotFoundError("Profile", profile_id)
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            msg = f"Profile fields cannot be updated: {sorted(unknown)}"
            raise ValueError(msg)
        self._rows[profile_id] = dataclasses.replace(current, **changes)


class InMemoryInvitationRegistry:
    """Invitation registry kept in a dict keyed by code.

    Each transition checks and writes without an intervening suspension
    point, which makes it atomic on a single event loop.
    """

    def __init__(self, invitations: Iterable[Invitation] = ()) -> None:
        self._rows: dict[str, Invitation] = {inv.code: inv for inv in invitations}

    def add(self, invitation: Invitation) -> None:
        self._rows[invitation.code] = invitation

    async def find_by_code(self, code: str) -> Invitation | None:
        return self._rows.get(code)

    async def conditional_accept(self, code: str, now: datetime) -> bool:
        invitation = self._rows.get(code)
        if invitation is None or invitation.status != InvitationStatus.PENDING:
            return False
        if invitation.is_expired(now):
            return False
        self._rows[code] = dataclasses.replace(invitation, status=InvitationStatus.ACCEPTED)
        return True

    async def mark_expired(self, code: str, now: datetime) -> bool:
        invitation = self._rows.get(code)
        if invitation is None or invitation.status != InvitationStatus.PENDING:
            return False
        if not invitation.is_expired(now):
            return False
        self._rows[code] = dataclasses.replace(invitation, status=InvitationStatus.EXPIRED)
        return True


class StaticPermissionChecker:
    """Permission predicate backed by a fixed ``user_id -> permissions`` map."""

    def __init__(self, grants: Mapping[str, Iterable[str]] | None = None) -> None:
        self._grants = {user_id: frozenset(perms) for user_id, perms in (grants or {}).items()}

    def grant(self, user_id: str, *permissions: str) -> None:
        self._grants[user_id] = self._grants.get(user_id, frozenset()) | frozenset(permissions)

    async def has_permission(self, user_id: str, permission_name: str) -> bool:
        return permission_name in self._grants.get(user_id, frozenset())
