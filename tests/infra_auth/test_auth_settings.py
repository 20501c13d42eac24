"""Tests for AuthSettings configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from qualifind.infra.auth.settings import AuthSettings, get_auth_settings


@pytest.mark.unit
class TestAuthSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("AUTH_URL", "AUTH_API_KEY", "AUTH_IN_MEMORY"):
            monkeypatch.delenv(name, raising=False)

        settings = AuthSettings(_env_file=None)

        assert settings.url == ""
        assert settings.in_memory is False
        assert settings.request_timeout == 10.0
        assert settings.bcrypt_rounds == 12

    def test_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUTH_URL", "https://x.example.co/auth/v1")
        monkeypatch.setenv("AUTH_API_KEY", "anon-key")
        monkeypatch.setenv("AUTH_IN_MEMORY", "true")

        settings = AuthSettings(_env_file=None)

        assert settings.url == "https://x.example.co/auth/v1"
        assert settings.in_memory is True
        settings.validate_remote_config()

    def test_api_key_hidden_from_repr(self) -> None:
        settings = AuthSettings(_env_file=None, api_key="super-secret-key")
        assert "super-secret-key" not in repr(settings)

    def test_validate_requires_url(self) -> None:
        with pytest.raises(ValueError, match="AUTH_URL is required"):
            AuthSettings(_env_file=None, url="", api_key="k").validate_remote_config()

    def test_validate_requires_http_url(self) -> None:
        with pytest.raises(ValueError, match="valid HTTP"):
            AuthSettings(_env_file=None, url="ftp://x", api_key="k").validate_remote_config()

    def test_validate_requires_api_key(self) -> None:
        with pytest.raises(ValueError, match="AUTH_API_KEY"):
            AuthSettings(_env_file=None, url="https://x", api_key="").validate_remote_config()

    def test_bcrypt_rounds_lower_bound(self) -> None:
        with pytest.raises(ValidationError):
            AuthSettings(_env_file=None, bcrypt_rounds=3)

    def test_accessor_is_cached(self) -> None:
        get_auth_settings.cache_clear()
        try:
            assert get_auth_settings() is get_auth_settings()
        finally:
            get_auth_settings.cache_clear()
