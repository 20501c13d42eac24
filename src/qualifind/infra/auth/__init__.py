"""Qualifind Infra Auth -- credential store client and settings."""

from qualifind.infra.auth.credential_client import (
    CredentialStoreClient,
    CredentialStoreError,
    StoredSession,
    parse_principal,
)
from qualifind.infra.auth.settings import AuthSettings, get_auth_settings

__all__ = [
    "AuthSettings",
    "CredentialStoreClient",
    "CredentialStoreError",
    "StoredSession",
    "get_auth_settings",
    "parse_principal",
]
