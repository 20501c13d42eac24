"""Value objects for principals and profiles.

Immutable, validated domain primitives. All validation occurs at construction.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Role(StrEnum):
    """Application role bound to a profile.

    Uses StrEnum so stored rows and provider metadata compare as plain strings.
    """

    CONTRACTOR = "contractor"
    SUBCONTRACTOR = "subcontractor"

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Return the matching role, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return None
        return None


@dataclass(frozen=True, slots=True)
class Email:
    """Validated, normalised email address.

    Leading/trailing whitespace is stripped and the address is lowercased.

    Attributes:
        value: The validated email string.

    Raises:
        ValueError: If email is empty, invalid format or exceeds 255 chars.
    """

    value: str

    def __post_init__(self) -> None:
        normalised = self.value.strip().lower()
        if not normalised:
            msg = "Email cannot be empty"
            raise ValueError(msg)
        if len(normalised) > 255:
            msg = f"Email too long: {len(normalised)} chars (max 255)"
            raise ValueError(msg)
        if not _EMAIL_PATTERN.match(normalised):
            msg = f"Invalid email format: '{self.value}'"
            raise ValueError(msg)
        object.__setattr__(self, "value", normalised)


@dataclass(frozen=True, slots=True)
class DisplayName:
    """Validated display name value object.

    Format: Non-empty string after whitespace stripping, max 255 characters.

    Attributes:
        value: The validated display name string (whitespace stripped).

    Raises:
        ValueError: If display name is empty/whitespace-only or exceeds 255 chars.
    """

    value: str

    def __post_init__(self) -> None:
        stripped = self.value.strip()
        if not stripped:
            msg = "Display name cannot be empty"
            raise ValueError(msg)
        if len(stripped) > 255:
            msg = f"Display name too long: {len(stripped)} chars (max 255)"
            raise ValueError(msg)
        object.__setattr__(self, "value", stripped)
