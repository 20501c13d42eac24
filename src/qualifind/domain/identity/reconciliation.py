"""Identity reconciliation engine for sign-in and registration.

Orchestrates the credential store, the profile store and the invitation
registry, which are written by different subsystems and can drift apart:

1. Sign-in: verify credentials -> fetch profile -> repair drift -> enforce role
2. Registration: create principal -> redeem invitation (best-effort) ->
   create profile (idempotent) -> request verification email (detached)
3. Every sign-in is also a repair attempt for a missing profile row

Secondary-store failures (profile repair, invitation redemption,
verification email) are logged and never become the operation's failure.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections import deque
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from qualifind.domain.identity.invitation_redemption import InvitationRedeemer, utc_now
from qualifind.domain.identity.settings import IdentitySettings, get_identity_settings
from qualifind.foundation.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    DomainError,
    InvalidInvitationError,
    NotFoundError,
    RoleMismatchError,
    StoreUnavailableError,
    ValidationError,
)
from qualifind.foundation.domain.principal import PrincipalMetadata
from qualifind.foundation.domain.profile import Profile
from qualifind.foundation.domain.user_value_objects import DisplayName, Email, Role

if TYPE_CHECKING:
    from datetime import datetime

    from qualifind.domain.identity.session_context import SessionContext
    from qualifind.foundation.domain.invitation import InvitationRecord
    from qualifind.foundation.domain.ports import (
        CredentialStorePort,
        InvitationRegistryPort,
        ProfileStorePort,
    )
    from qualifind.foundation.domain.principal import Principal

logger = logging.getLogger(__name__)

_MAX_PENDING_WARNINGS = 100


@dataclass(frozen=True, slots=True)
class OperationWarning:
    """Non-fatal problem reported by detached work.

    Attributes:
        operation: Operation that produced the warning (e.g. "email_verification").
        message: Human-readable description.
        context: Structured details for logging.
    """

    operation: str
    message: str
    context: dict[str, Any] = dataclasses.field(default_factory=dict)


WarningListener = Callable[[OperationWarning], None]


class WarningChannel:
    """Collects non-fatal warnings from fire-and-forget side effects.

    Listeners see every warning. Undrained warnings are capped at
    ``max_pending``; the oldest are dropped first.
    """

    def __init__(self, max_pending: int = _MAX_PENDING_WARNINGS) -> None:
        self._pending: deque[OperationWarning] = deque(maxlen=max_pending)
        self._listeners: list[WarningListener] = []

    def emit(self, warning: OperationWarning) -> None:
        self._pending.append(warning)
        for listener in list(self._listeners):
            try:
                listener(warning)
            except Exception:
                logger.exception("warning_listener_failed")

    def subscribe(self, listener: WarningListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def drain(self) -> list[OperationWarning]:
        """Return and clear the warnings collected so far."""
        drained = list(self._pending)
        self._pending.clear()
        return drained


@dataclass(frozen=True, slots=True)
class Registration:
    """Outcome of ``register``.

    Attributes:
        profile: The new, unverified profile.
        invitation: Provenance of the redeemed invitation, if one was redeemed.
        invitation_error: Why a supplied invitation code was not redeemed.
    """

    profile: Profile
    invitation: InvitationRecord | None = None
    invitation_error: DomainError | None = None


class IdentityReconciliationEngine:
    """Keeps principals, profiles and invitations consistent across sign-in flows.

    Attributes:
        warnings: Channel receiving non-fatal warnings from detached work.
    """

    def __init__(
        self,
        credentials: CredentialStorePort,
        profiles: ProfileStorePort,
        invitations: InvitationRegistryPort,
        session: SessionContext,
        *,
        settings: IdentitySettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._credentials = credentials
        self._profiles = profiles
        self._session = session
        self._settings = settings or get_identity_settings()
        self._clock = clock
        self._redeemer = InvitationRedeemer(
            invitations,
            min_length=self._settings.invitation_code_min_length,
            clock=clock,
        )
        self._background: set[asyncio.Task[None]] = set()
        self.warnings = WarningChannel()

    @property
    def session(self) -> SessionContext:
        return self._session

    # -- Sign in --

    async def sign_in(self, email: str, password: str, claimed_role: Role | str) -> Profile:
        """Authenticate and resolve the profile for the claimed role.

        Args:
            email: Account email.
            password: Account password.
            claimed_role: Role the caller is signing in as.

        Returns:
            The resolved (possibly repaired) profile.

        Raises:
            ValidationError: If ``claimed_role`` is not a known role.
            InvalidCredentialsError: If the credential store rejects the pair.
            RoleMismatchError: If the stored role differs from ``claimed_role``.
                The session is invalidated before this is raised.
            StoreUnavailableError: If the credential or profile store fails.
        """
        role = self._parse_role(claimed_role)
        with self._session.action():
            principal = await self._credentials.verify(email, password)

            # Any failure from here on must not leave the verified session behind.
            try:
                profile = await self._authorize(principal, role)
                profile = await self._record_sign_in(profile, principal)
            except DomainError as err:
                logger.warning(
                    "sign_in_denied",
                    extra={"principal_id": principal.id, "error_code": err.error_code},
                )
                await self._invalidate_session(principal)
                raise
            except Exception as err:
                logger.exception(
                    "sign_in_unexpected_error",
                    extra={"principal_id": principal.id},
                )
                await self._invalidate_session(principal)
                raise StoreUnavailableError("profiles") from err

            self._session.publish(profile)
            logger.info(
                "sign_in_succeeded",
                extra={"principal_id": principal.id, "role": str(role)},
            )
            return profile

    async def _authorize(self, principal: Principal, role: Role) -> Profile:
        """Fetch (or repair) the profile and enforce the claimed role."""
        profile = await self._profiles.get(principal.id)
        if profile is None:
            profile = await self._repair_profile(principal, role)

        if profile.role != role:
            logger.warning(
                "sign_in_role_mismatch",
                extra={
                    "principal_id": principal.id,
                    "claimed_role": str(role),
                    "stored_role": str(profile.role),
                },
            )
            raise RoleMismatchError(role)
        return profile

    async def _repair_profile(self, principal: Principal, fallback_role: Role) -> Profile:
        """Create the missing profile row from principal metadata.

        Never fails: store errors are logged and the synthesized profile is
        used for this session; the next sign-in tries again.
        """
        profile = Profile.from_principal(principal, fallback_role, self._clock())
        logger.warning(
            "profile_drift_detected",
            extra={
                "principal_id": principal.id,
                "role_source": "metadata" if principal.metadata.role else "claimed_role",
            },
        )
        try:
            created = await self._insert_profile(profile)
            if not created:
                existing = await self._profiles.get(principal.id)
                if existing is not None:
                    return existing
        except StoreUnavailableError:
            logger.warning(
                "profile_repair_failed",
                extra={"principal_id": principal.id},
                exc_info=True,
            )
            return profile

        logger.info("profile_repaired", extra={"principal_id": principal.id})
        return profile

    async def _record_sign_in(self, profile: Profile, principal: Principal) -> Profile:
        changes: dict[str, Any] = {"last_sign_in": self._clock()}
        if principal.email_verified != profile.email_verified:
            changes["email_verified"] = principal.email_verified
        try:
            await self._profiles.update(profile.id, changes)
        except (StoreUnavailableError, NotFoundError):
            logger.warning(
                "sign_in_bookkeeping_failed",
                extra={"principal_id": principal.id},
                exc_info=True,
            )
        return dataclasses.replace(profile, **changes)

    async def _invalidate_session(self, principal: Principal) -> None:
        """Sign out and clear the context before any failure is surfaced."""
        try:
            await self._credentials.invalidate_session()
        except Exception:
            logger.error(
                "session_invalidation_failed",
                extra={"principal_id": principal.id},
                exc_info=True,
            )
        self._session.publish(None)

    # -- Registration --

    async def register(
        self,
        email: str,
        password: str,
        name: str,
        organization: str,
        role: Role | str,
        invitation_code: str | None = None,
    ) -> Registration:
        """Create a principal and its profile, redeeming an invitation if given.

        Args:
            email: Account email.
            password: Account password (strength checked by the credential store).
            name: Display name.
            organization: Company name.
            role: Contractor or subcontractor.
            invitation_code: Optional code; only redeemed for subcontractors.

        Returns:
            Registration with the new profile and the invitation outcome.

        Raises:
            ValidationError: Malformed email, empty name or unknown role.
            SignupRejectedError: If the credential store refuses the signup.
            StoreUnavailableError: If the credential store cannot be reached.
        """
        parsed_role = self._parse_role(role)
        try:
            validated_email = Email(email).value
        except ValueError as err:
            raise ValidationError("email", str(err)) from err
        try:
            validated_name = DisplayName(name).value
        except ValueError as err:
            raise ValidationError("name", str(err)) from err
        organization = organization.strip()

        with self._session.action():
            metadata = PrincipalMetadata(
                name=validated_name,
                organization=organization or None,
                role=parsed_role,
            )
            principal = await self._credentials.create(validated_email, password, metadata)
            logger.info(
                "principal_created",
                extra={"principal_id": principal.id, "role": str(parsed_role)},
            )

            invitation: InvitationRecord | None = None
            invitation_error: DomainError | None = None
            if invitation_code:
                if parsed_role == Role.SUBCONTRACTOR:
                    invitation, invitation_error = await self._redeem_best_effort(
                        invitation_code, principal
                    )
                else:
                    logger.warning(
                        "invitation_ignored_for_role",
                        extra={"principal_id": principal.id, "role": str(parsed_role)},
                    )

            profile = Profile(
                id=principal.id,
                email=validated_email,
                display_name=validated_name,
                role=parsed_role,
                organization=organization,
                email_verified=False,
                created_at=self._clock(),
                invited_by=invitation.contractor_id if invitation else None,
            )
            try:
                await self._insert_profile(profile)
            except StoreUnavailableError:
                logger.warning(
                    "registration_profile_deferred",
                    extra={"principal_id": principal.id},
                    exc_info=True,
                )

            self._session.publish(profile)
            self._spawn(self._send_verification(validated_email), name="email-verification")
            return Registration(
                profile=profile,
                invitation=invitation,
                invitation_error=invitation_error,
            )

    async def _redeem_best_effort(
        self,
        code: str,
        principal: Principal,
    ) -> tuple[InvitationRecord | None, DomainError | None]:
        try:
            record = await self._redeemer.redeem(code)
        except (InvalidInvitationError, StoreUnavailableError) as err:
            logger.warning(
                "registration_invitation_not_redeemed",
                extra={"principal_id": principal.id, "error_code": err.error_code},
            )
            return None, err
        return record, None

    async def _insert_profile(self, profile: Profile) -> bool:
        """Insert a profile; a duplicate key counts as success."""
        try:
            return await self._profiles.insert(profile)
        except ConflictError:
            logger.info("profile_already_exists", extra={"principal_id": profile.id})
            return False

    async def _send_verification(self, email: str) -> None:
        try:
            await self._credentials.request_email_verification(email)
        except Exception as err:
            logger.warning("email_verification_failed", exc_info=True)
            message = (
                err.message
                if isinstance(err, DomainError)
                else "The verification email could not be sent."
            )
            self.warnings.emit(
                OperationWarning(
                    operation="email_verification",
                    message=message,
                    context={"error_type": type(err).__name__},
                )
            )

    def _spawn(self, coro: Coroutine[Any, Any, None], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Wait for detached side effects started so far."""
        if self._background:
            await asyncio.gather(*self._background)

    # -- Sign out and account maintenance --

    async def sign_out(self) -> None:
        """End the session. Local state is cleared even if the store fails.

        Raises:
            StoreUnavailableError: If the credential store could not be reached.
        """
        with self._session.action():
            try:
                await self._credentials.invalidate_session()
            finally:
                self._session.publish(None)
            logger.info("signed_out")

    async def request_password_reset(self, email: str) -> None:
        """Send a password reset link to ``email``."""
        await self._credentials.request_password_reset(
            email.strip(), self._settings.password_reset_redirect_url
        )
        logger.info("password_reset_requested")

    async def update_password(self, new_password: str) -> None:
        """Change the signed-in principal's password.

        Raises:
            ValidationError: If the password is shorter than the configured minimum.
            AuthenticationError: If no session is active.
        """
        minimum = self._settings.password_min_length
        if len(new_password) < minimum:
            raise ValidationError(
                "password", f"Password must be at least {minimum} characters"
            )
        await self._credentials.update_password(new_password)
        logger.info("password_updated")

    async def resend_verification(self) -> None:
        """Re-send the verification email for the current profile.

        Raises:
            AuthenticationError: If no profile is signed in.
        """
        profile = self._session.current_profile
        if profile is None:
            raise AuthenticationError(
                "Sign in to verify your email address.", error_code="NOT_AUTHENTICATED"
            )
        await self._credentials.request_email_verification(profile.email)

    async def preview_invitation(self, code: str) -> InvitationRecord:
        """Validate an invitation code without redeeming it."""
        return await self._redeemer.preview(code)

    @staticmethod
    def _parse_role(value: Role | str) -> Role:
        role = Role.parse(value)
        if role is None:
            raise ValidationError("role", f"Unknown role: {value!r}")
        return role
