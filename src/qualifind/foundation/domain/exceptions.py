"""Domain exception hierarchy for the identity onboarding flow.

Every caller-facing failure carries a machine-readable ``error_code`` and a
human-readable ``message``. Raw collaborator errors never appear in the
message; they are chained as ``__cause__`` for logging only.

Example:
    >>> from qualifind.foundation.domain.exceptions import RoleMismatchError
    >>> raise RoleMismatchError("subcontractor")
    RoleMismatchError: This account is not registered as a subcontractor. (claimed_role=subcontractor)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "DomainError",
    "InvalidCredentialsError",
    "InvalidInvitationError",
    "NotFoundError",
    "RoleMismatchError",
    "SignupRejectedError",
    "StoreUnavailableError",
    "ValidationError",
]


class DomainError(Exception):
    """Base class for all domain errors.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (ids, field names).
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize domain error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class NotFoundError(DomainError):
    """Raised when a requested record does not exist.

    Attributes:
        resource_type: Type of missing resource.
        resource_id: Identifier of missing resource.
    """

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        resource_id: UUID | str,
        **extra_context: Any,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} not found: {resource_id}"
        context = {
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            **extra_context,
        }
        super().__init__(message, context)


class ValidationError(DomainError):
    """Raised when input fails domain validation rules before any store call.

    Attributes:
        field: Field that failed validation.
        reason: Human-readable validation failure reason.

    Example:
        >>> raise ValidationError("password", "Password must be at least 6 characters")
        ValidationError: Validation failed for 'password': Password must be at least 6 characters
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        field: str,
        reason: str,
        **extra_context: Any,
    ) -> None:
        self.field = field
        self.reason = reason
        message = f"Validation failed for '{field}': {reason}"
        context = {
            "field": field,
            "reason": reason,
            **extra_context,
        }
        super().__init__(message, context)


class ConflictError(DomainError):
    """Raised when a write conflicts with current store state.

    Stores may raise this for a duplicate primary key instead of reporting
    it through a return value.

    Attributes:
        reason: Description of the conflict.
    """

    error_code: str = "CONFLICT"

    def __init__(
        self,
        reason: str,
        **context: Any,
    ) -> None:
        self.reason = reason
        message = f"Conflict: {reason}"
        super().__init__(message, context)


class AuthenticationError(DomainError):
    """Raised when no authenticated principal is available for an operation.

    Attributes:
        error_code: Machine-readable error code (e.g., "NOT_AUTHENTICATED").
    """

    error_code: str = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str = "AUTHENTICATION_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize authentication error.

        Args:
            message: Human-readable error description.
            error_code: Machine-readable error code for client handling.
            context: Structured debugging information.
        """
        self.error_code = error_code
        super().__init__(message, context)


class InvalidCredentialsError(AuthenticationError):
    """Raised when the credential store rejects an email/password pair.

    User-correctable. The credential store's message is passed through.

    Example:
        >>> raise InvalidCredentialsError()
        InvalidCredentialsError: Invalid login credentials
    """

    error_code: str = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid login credentials", **context: Any) -> None:
        super().__init__(message, error_code="INVALID_CREDENTIALS", context=context)


class AuthorizationError(DomainError):
    """Raised when an authenticated principal lacks the required access."""

    error_code: str = "AUTHORIZATION_ERROR"


class RoleMismatchError(AuthorizationError):
    """Raised when credentials are valid but the stored role differs from the claim.

    The session established by the credential check has already been
    invalidated by the time this error reaches the caller.

    Attributes:
        claimed_role: The role the caller tried to sign in as.
    """

    error_code: str = "ROLE_MISMATCH"

    def __init__(self, claimed_role: str, **extra_context: Any) -> None:
        self.claimed_role = str(claimed_role)
        message = f"This account is not registered as a {self.claimed_role}."
        super().__init__(message, {"claimed_role": self.claimed_role, **extra_context})


class SignupRejectedError(DomainError):
    """Raised when the credential store refuses to create a principal.

    Covers duplicate e-mail, weak password and similar store-side checks.

    Attributes:
        reason: The credential store's reason, passed through verbatim.
    """

    error_code: str = "SIGNUP_REJECTED"

    def __init__(self, reason: str, **extra_context: Any) -> None:
        self.reason = reason
        super().__init__(reason, {**extra_context})


_INVITATION_MESSAGES: dict[str, str] = {
    "malformed": "Invitation codes must be at least {min_length} characters.",
    "not_found": "No invitation matches this code.",
    "already_used": "This invitation has already been used.",
    "expired": "This invitation has expired.",
}


class InvalidInvitationError(DomainError):
    """Raised when an invitation code cannot be redeemed.

    Never fatal to registration; callers log it and carry on.

    Attributes:
        reason: One of ``malformed``, ``not_found``, ``already_used``, ``expired``.

    Example:
        >>> raise InvalidInvitationError("expired", code="ABC12345")
        InvalidInvitationError: This invitation has expired. (reason=expired, code=ABC12345)
    """

    error_code: str = "INVALID_INVITATION"

    def __init__(self, reason: str, *, min_length: int = 6, **extra_context: Any) -> None:
        self.reason = reason
        template = _INVITATION_MESSAGES.get(reason, "This invitation code is not valid.")
        message = template.format(min_length=min_length)
        super().__init__(message, {"reason": reason, **extra_context})


class StoreUnavailableError(DomainError):
    """Raised when a collaborator cannot be reached or fails internally.

    Generic and retryable. The underlying transport error is chained, not
    embedded in the message.

    Attributes:
        store: Name of the collaborator (``credentials``, ``profiles``, ...).
    """

    error_code: str = "STORE_UNAVAILABLE"

    def __init__(self, store: str, **extra_context: Any) -> None:
        self.store = store
        message = "The service is temporarily unavailable. Please try again."
        super().__init__(message, {"store": store, **extra_context})
