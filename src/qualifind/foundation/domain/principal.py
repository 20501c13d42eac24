"""Principal value object representing an authenticated identity.

Pure domain object with no external dependencies. Issued and owned by the
credential store; the core never mutates it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from qualifind.foundation.domain.user_value_objects import Role


class SessionEvent(StrEnum):
    """Session-change events emitted by the credential store."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True, slots=True)
class PrincipalMetadata:
    """Partial profile denormalised onto the principal record at signup.

    Every field is optional. Only the profile repair path reads it.

    Attributes:
        name: Display name given at signup.
        organization: Company name given at signup.
        role: Role chosen at signup.
    """

    name: str | None = None
    organization: str | None = None
    role: Role | None = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> PrincipalMetadata:
        """Parse a provider metadata payload, ignoring anything malformed."""
        if not isinstance(raw, Mapping):
            return cls()
        organization = _optional_str(raw.get("organization")) or _optional_str(
            raw.get("company_name")
        )
        return cls(
            name=_optional_str(raw.get("name")),
            organization=organization,
            role=Role.parse(raw.get("role")),
        )

    def to_mapping(self) -> dict[str, str]:
        """Serialise for the credential store's metadata payload."""
        payload: dict[str, str] = {}
        if self.name is not None:
            payload["name"] = self.name
        if self.organization is not None:
            payload["company_name"] = self.organization
        if self.role is not None:
            payload["role"] = self.role.value
        return payload


@dataclass(frozen=True, slots=True)
class Principal:
    """Identity issued by the credential store.

    Attributes:
        id: Opaque principal identifier; also the profile primary key.
        email: Email the principal signed up with.
        email_verified: Whether the email address has been confirmed.
        metadata: Partial profile stored alongside the credentials.
    """

    id: str
    email: str
    email_verified: bool = False
    metadata: PrincipalMetadata = field(default_factory=PrincipalMetadata)
