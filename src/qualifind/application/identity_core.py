"""Wiring for the identity onboarding core.

Chooses adapters from configuration, starts the Session Context and tears
everything down on exit:

- ``AUTH_IN_MEMORY=true``: in-memory adapters for every port
- otherwise: ``CredentialStoreClient`` over HTTP plus SQL repositories

Usage:
    async with identity_core() as core:
        profile = await core.engine.sign_in("a@b.com", "secret1", "contractor")
        allowed = await core.session.has_permission("projects.create")
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from qualifind.domain.identity.infrastructure import (
    InMemoryCredentialStore,
    InMemoryInvitationRegistry,
    InMemoryProfileStore,
    SqlInvitationRepository,
    SqlPermissionChecker,
    SqlProfileRepository,
    StaticPermissionChecker,
)
from qualifind.domain.identity.reconciliation import IdentityReconciliationEngine
from qualifind.domain.identity.session_context import SessionContext
from qualifind.domain.identity.settings import IdentitySettings, get_identity_settings
from qualifind.foundation.domain.exceptions import StoreUnavailableError
from qualifind.infra.auth.credential_client import CredentialStoreClient, CredentialStoreError
from qualifind.infra.auth.settings import AuthSettings, get_auth_settings
from qualifind.infra.observability.logging import LoggingSettings, configure_logging
from qualifind.infra.persistence.database import (
    DatabaseManager,
    DatabaseSettings,
    get_database_manager,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from qualifind.foundation.domain.ports import (
        CredentialStorePort,
        InvitationRegistryPort,
        PermissionCheckerPort,
        ProfileStorePort,
    )

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IdentityCore:
    """Running identity core.

    Attributes:
        engine: Sign-in, registration and account operations.
        session: Process-wide reactive session state.
        credentials: Credential store adapter in use.
        profiles: Profile store adapter in use.
        invitations: Invitation registry adapter in use.
        permissions: Permission checker adapter in use.
    """

    engine: IdentityReconciliationEngine
    session: SessionContext
    credentials: CredentialStorePort
    profiles: ProfileStorePort
    invitations: InvitationRegistryPort
    permissions: PermissionCheckerPort


@asynccontextmanager
async def identity_core(
    *,
    auth_settings: AuthSettings | None = None,
    identity_settings: IdentitySettings | None = None,
    database_settings: DatabaseSettings | None = None,
    logging_settings: LoggingSettings | None = None,
    configure_logs: bool = True,
    persisted_session: tuple[str, str] | None = None,
) -> AsyncIterator[IdentityCore]:
    """Build, start and finally close the identity core.

    Args:
        auth_settings: Credential store settings (defaults to environment).
        identity_settings: Onboarding settings (defaults to environment).
        database_settings: Database settings, used only for SQL adapters.
        logging_settings: Logging settings passed to ``configure_logging``.
        configure_logs: Install the structlog configuration on entry.
        persisted_session: ``(access_token, refresh_token)`` saved from a
            previous run; restored before the session context starts.
            Ignored by the in-memory adapters.

    Yields:
        The running IdentityCore.

    Raises:
        ValueError: If remote adapters are selected but not configured.
    """
    if configure_logs:
        configure_logging(logging_settings)

    auth_settings = auth_settings or get_auth_settings()
    identity_settings = identity_settings or get_identity_settings()

    async with AsyncExitStack() as stack:
        credentials: CredentialStorePort
        profiles: ProfileStorePort
        invitations: InvitationRegistryPort
        permissions: PermissionCheckerPort

        if auth_settings.in_memory:
            credentials = InMemoryCredentialStore(
                password_min_length=identity_settings.password_min_length,
                bcrypt_rounds=auth_settings.bcrypt_rounds,
            )
            profiles = InMemoryProfileStore()
            invitations = InMemoryInvitationRegistry()
            permissions = StaticPermissionChecker()
            logger.info("identity_core_adapters_selected", extra={"mode": "in_memory"})
        else:
            auth_settings.validate_remote_config()
            client = CredentialStoreClient(
                auth_settings.url,
                auth_settings.api_key,
                email_redirect_url=auth_settings.email_redirect_url,
                timeout=auth_settings.request_timeout,
            )
            stack.push_async_callback(client.aclose)
            credentials = client
            if persisted_session is not None:
                await _restore(client, persisted_session)

            manager = (
                DatabaseManager(database_settings)
                if database_settings is not None
                else get_database_manager()
            )
            stack.callback(manager.dispose)
            session_factory = manager.get_sync_session_factory()
            profiles = SqlProfileRepository(session_factory)
            invitations = SqlInvitationRepository(session_factory)
            permissions = SqlPermissionChecker(session_factory)
            logger.info("identity_core_adapters_selected", extra={"mode": "remote"})

        session = SessionContext(credentials, profiles, permissions)
        stack.push_async_callback(session.aclose)
        engine = IdentityReconciliationEngine(
            credentials,
            profiles,
            invitations,
            session,
            settings=identity_settings,
        )
        stack.push_async_callback(engine.wait_for_background)
        await session.start()

        yield IdentityCore(
            engine=engine,
            session=session,
            credentials=credentials,
            profiles=profiles,
            invitations=invitations,
            permissions=permissions,
        )
        logger.info("identity_core_stopping")


async def _restore(client: CredentialStoreClient, tokens: tuple[str, str]) -> None:
    """Restore a persisted session; an unreachable auth API starts signed out."""
    try:
        await client.restore_session(*tokens)
    except (StoreUnavailableError, CredentialStoreError):
        logger.warning("identity_core_session_not_restored", exc_info=True)
