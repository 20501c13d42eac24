"""Value objects for the Invitation lifecycle.

State machine (checked lazily at redemption, never reversed):
    pending -> accepted
    pending -> expired
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

DEFAULT_INVITATION_CODE_MIN_LENGTH = 6


class InvitationStatus(StrEnum):
    """Invitation lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class InvitationCode:
    """Opaque redemption code, whitespace stripped.

    Length is enforced here, at validation time, not by the registry.

    Attributes:
        value: The stripped code.
        min_length: Minimum accepted length.

    Raises:
        ValueError: If the stripped code is shorter than ``min_length``.
    """

    value: str
    min_length: int = DEFAULT_INVITATION_CODE_MIN_LENGTH

    def __post_init__(self) -> None:
        stripped = self.value.strip()
        if len(stripped) < self.min_length:
            msg = f"Invitation code too short: {len(stripped)} chars (min {self.min_length})"
            raise ValueError(msg)
        object.__setattr__(self, "value", stripped)

    def __str__(self) -> str:
        return self.value
