"""Credential store configuration settings.

Loaded from environment variables with AUTH_ prefix.

Environment Variables:
    AUTH_URL: Base URL of the auth REST API (e.g. https://x.example.co/auth/v1)
    AUTH_API_KEY: Publishable API key sent with every request
    AUTH_REQUEST_TIMEOUT: HTTP timeout in seconds
    AUTH_IN_MEMORY: Use in-memory adapters instead of the network/database
    AUTH_BCRYPT_ROUNDS: bcrypt work factor for the in-memory credential store
    AUTH_EMAIL_REDIRECT_URL: Link target embedded in sign-up confirmation emails
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Credential store configuration loaded from environment variables.

    Example:
        >>> settings = AuthSettings()
        >>> settings.in_memory
        False
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str = Field(
        default="",
        description="Base URL of the auth REST API",
    )
    api_key: str = Field(
        default="",
        repr=False,  # Security: never log the API key
        description="Publishable API key",
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP request timeout in seconds",
    )
    in_memory: bool = Field(
        default=False,
        description="Use in-memory adapters (development and tests)",
    )
    bcrypt_rounds: int = Field(
        default=12,
        ge=4,
        le=31,
        description="bcrypt work factor for the in-memory credential store",
    )
    email_redirect_url: str = Field(
        default="http://localhost:8080/",
        description="Link target embedded in sign-up confirmation emails",
    )

    def validate_remote_config(self) -> None:
        """Validate configuration for the HTTP credential store.

        Raises:
            ValueError: If the URL or API key is missing or malformed.
        """
        if not self.url:
            raise ValueError("AUTH_URL is required unless AUTH_IN_MEMORY is set")
        if not self.url.startswith("http://") and not self.url.startswith("https://"):
            raise ValueError("AUTH_URL must be a valid HTTP(S) URL")
        if not self.api_key:
            raise ValueError("AUTH_API_KEY is required unless AUTH_IN_MEMORY is set")


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """Get singleton AuthSettings instance.

    Clear cache with ``get_auth_settings.cache_clear()`` for testing.
    """
    return AuthSettings()
