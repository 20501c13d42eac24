"""Shared fixtures for identity core tests."""

from __future__ import annotations

import pytest

from qualifind.domain.identity.infrastructure.in_memory import (
    InMemoryCredentialStore,
    InMemoryInvitationRegistry,
    InMemoryProfileStore,
    StaticPermissionChecker,
)
from qualifind.domain.identity.settings import IdentitySettings
from tests.helpers import FakeClock, IdentityHarness, make_invitation


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def identity_settings() -> IdentitySettings:
    return IdentitySettings(_env_file=None)


@pytest.fixture()
def credentials() -> InMemoryCredentialStore:
    """Credential store with a low bcrypt work factor."""
    return InMemoryCredentialStore(bcrypt_rounds=4)


@pytest.fixture()
def profiles() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture()
def invitations() -> InMemoryInvitationRegistry:
    """Registry holding invitation ABC12345 issued by contractor c1."""
    return InMemoryInvitationRegistry([make_invitation()])


@pytest.fixture()
def permissions() -> StaticPermissionChecker:
    return StaticPermissionChecker()


@pytest.fixture()
def harness(
    credentials: InMemoryCredentialStore,
    profiles: InMemoryProfileStore,
    invitations: InMemoryInvitationRegistry,
    permissions: StaticPermissionChecker,
    clock: FakeClock,
    identity_settings: IdentitySettings,
) -> IdentityHarness:
    return IdentityHarness(
        credentials=credentials,
        profiles=profiles,
        invitations=invitations,
        permissions=permissions,
        clock=clock,
        settings=identity_settings,
    )
