"""Unit tests for identity value objects."""

from __future__ import annotations

import pytest

from qualifind.foundation.domain.invitation_value_objects import (
    InvitationCode,
    InvitationStatus,
)
from qualifind.foundation.domain.user_value_objects import DisplayName, Email, Role


@pytest.mark.unit
class TestRole:
    def test_parse_exact(self) -> None:
        assert Role.parse("contractor") is Role.CONTRACTOR

    def test_parse_normalises_case_and_whitespace(self) -> None:
        assert Role.parse("  SubContractor ") is Role.SUBCONTRACTOR

    def test_parse_role_instance(self) -> None:
        assert Role.parse(Role.SUBCONTRACTOR) is Role.SUBCONTRACTOR

    @pytest.mark.parametrize("value", ["admin", "", None, 3])
    def test_parse_unknown_returns_none(self, value: object) -> None:
        assert Role.parse(value) is None

    def test_compares_as_string(self) -> None:
        assert Role.CONTRACTOR == "contractor"


@pytest.mark.unit
class TestEmail:
    def test_normalises(self) -> None:
        assert Email("  A@B.com ").value == "a@b.com"

    @pytest.mark.parametrize("value", ["", "   ", "no-at-sign", "a@b", "a b@c.com"])
    def test_rejects_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            Email(value)

    def test_rejects_too_long(self) -> None:
        with pytest.raises(ValueError, match="too long"):
            Email("a" * 250 + "@b.com")


@pytest.mark.unit
class TestDisplayName:
    def test_strips(self) -> None:
        assert DisplayName("  Ada  ").value == "Ada"

    def test_rejects_blank(self) -> None:
        with pytest.raises(ValueError, match="empty"):
            DisplayName("   ")


@pytest.mark.unit
class TestInvitationCode:
    def test_accepts_min_length(self) -> None:
        assert InvitationCode("ABC123").value == "ABC123"

    def test_strips_whitespace(self) -> None:
        assert str(InvitationCode(" ABC12345 ")) == "ABC12345"

    def test_rejects_short(self) -> None:
        with pytest.raises(ValueError, match="too short"):
            InvitationCode("ABC")

    def test_custom_min_length(self) -> None:
        with pytest.raises(ValueError):
            InvitationCode("ABC12345", min_length=10)

    def test_status_values(self) -> None:
        assert {s.value for s in InvitationStatus} == {"pending", "accepted", "expired"}
