"""Identity onboarding configuration settings.

Loaded from environment variables with IDENTITY_ prefix.

Environment Variables:
    IDENTITY_INVITATION_CODE_MIN_LENGTH: Shortest code accepted before lookup
    IDENTITY_PASSWORD_MIN_LENGTH: Shortest password accepted by update_password
    IDENTITY_PASSWORD_RESET_REDIRECT_URL: Page the reset link lands on
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from qualifind.foundation.domain.invitation_value_objects import (
    DEFAULT_INVITATION_CODE_MIN_LENGTH,
)


class IdentitySettings(BaseSettings):
    """Identity onboarding configuration loaded from environment variables.

    Example:
        >>> settings = IdentitySettings()
        >>> settings.invitation_code_min_length
        6
    """

    model_config = SettingsConfigDict(
        env_prefix="IDENTITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    invitation_code_min_length: int = Field(
        default=DEFAULT_INVITATION_CODE_MIN_LENGTH,
        ge=1,
        le=255,
        description="Codes shorter than this are rejected without a registry lookup",
    )
    password_min_length: int = Field(
        default=6,
        ge=1,
        le=128,
        description="Minimum length for password changes",
    )
    password_reset_redirect_url: str = Field(
        default="http://localhost:8080/update-password",
        description="URL embedded in password reset emails",
    )


@lru_cache(maxsize=1)
def get_identity_settings() -> IdentitySettings:
    """Get singleton IdentitySettings instance.

    Clear cache with ``get_identity_settings.cache_clear()`` for testing.
    """
    return IdentitySettings()
