"""Tests for IdentitySettings configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from qualifind.domain.identity.settings import IdentitySettings, get_identity_settings


@pytest.mark.unit
class TestIdentitySettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("IDENTITY_INVITATION_CODE_MIN_LENGTH", raising=False)
        settings = IdentitySettings(_env_file=None)
        assert settings.invitation_code_min_length == 6
        assert settings.password_min_length == 6
        assert settings.password_reset_redirect_url.endswith("/update-password")

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("IDENTITY_INVITATION_CODE_MIN_LENGTH", "8")
        monkeypatch.setenv("IDENTITY_PASSWORD_RESET_REDIRECT_URL", "https://app.example/reset")

        settings = IdentitySettings(_env_file=None)

        assert settings.invitation_code_min_length == 8
        assert settings.password_reset_redirect_url == "https://app.example/reset"

    def test_rejects_zero_min_length(self) -> None:
        with pytest.raises(ValidationError):
            IdentitySettings(_env_file=None, invitation_code_min_length=0)

    def test_accessor_is_cached(self) -> None:
        get_identity_settings.cache_clear()
        try:
            assert get_identity_settings() is get_identity_settings()
        finally:
            get_identity_settings.cache_clear()
