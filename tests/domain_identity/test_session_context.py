"""Unit tests for SessionContext: startup, event handling and permissions."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import TimeoutError as SQLAlchemyTimeoutError

from qualifind.domain.identity.infrastructure.in_memory import (
    InMemoryCredentialStore,
    InMemoryProfileStore,
    StaticPermissionChecker,
)
from qualifind.domain.identity.infrastructure.profile_repository import SqlProfileRepository
from qualifind.domain.identity.session_context import SessionContext, SessionState
from qualifind.foundation.domain.exceptions import StoreUnavailableError
from qualifind.foundation.domain.principal import PrincipalMetadata
from qualifind.foundation.domain.profile import Profile
from qualifind.foundation.domain.user_value_objects import Role
from tests.helpers import FIXED_NOW


async def _seed_account(
    credentials: InMemoryCredentialStore,
    profiles: InMemoryProfileStore | None,
    *,
    email: str = "a@b.com",
    role: Role = Role.CONTRACTOR,
) -> Profile:
    """Create a principal (and optionally its profile), then sign it out."""
    principal = await credentials.create(
        email, "secret1", PrincipalMetadata("Ada", "Built Inc", role)
    )
    await credentials.invalidate_session()
    profile = Profile.from_principal(principal, role, FIXED_NOW)
    if profiles is not None:
        await profiles.insert(profile)
    return profile


@pytest.mark.unit
class TestStartup:
    @pytest.mark.asyncio
    async def test_initial_state_is_loading(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        session = SessionContext(credentials, profiles)
        assert session.state == SessionState(profile=None, loading=True)
        assert not session.is_authenticated

    @pytest.mark.asyncio
    async def test_start_without_session(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            assert session.state == SessionState(profile=None, loading=False)
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_start_resolves_persisted_session(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        await credentials.verify("a@b.com", "secret1")

        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            assert session.current_profile == profile
            assert session.loading is False
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        session = SessionContext(credentials, profiles)
        await session.start()
        await session.start()
        try:
            assert len(credentials._listeners) == 1
        finally:
            await session.aclose()
        assert credentials._listeners == []

    @pytest.mark.asyncio
    async def test_start_fails_closed_on_store_error(
        self, credentials: InMemoryCredentialStore
    ) -> None:
        await _seed_account(credentials, None)
        await credentials.verify("a@b.com", "secret1")
        profiles = AsyncMock()
        profiles.get.side_effect = StoreUnavailableError("profiles")

        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            assert session.state == SessionState(profile=None, loading=False)
        finally:
            await session.aclose()


@pytest.mark.unit
class TestExternalSessionChanges:
    @pytest.mark.asyncio
    async def test_external_sign_in_and_out(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            await credentials.verify("a@b.com", "secret1")
            await session.drain()
            assert session.current_profile == profile

            await credentials.invalidate_session()
            await session.drain()
            assert session.current_profile is None
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_missing_profile_resolves_to_unauthenticated(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        await _seed_account(credentials, None)
        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            await credentials.verify("a@b.com", "secret1")
            await session.drain()

            assert session.current_profile is None
            assert await profiles.get(credentials._session.id) is None
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_stale_sign_in_event_cannot_resurrect_session(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        await _seed_account(credentials, profiles)
        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            # Both events are queued before the worker gets to run.
            await credentials.verify("a@b.com", "secret1")
            await credentials.invalidate_session()
            await session.drain()

            assert session.current_profile is None
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_listeners_receive_each_new_state(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        session = SessionContext(credentials, profiles)
        seen: list[SessionState] = []
        session.subscribe(seen.append)
        await session.start()
        try:
            await credentials.verify("a@b.com", "secret1")
            await session.drain()
        finally:
            await session.aclose()

        assert seen == [
            SessionState(profile=None, loading=False),
            SessionState(profile=profile, loading=False),
        ]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        session = SessionContext(credentials, profiles)

        def broken(state: SessionState) -> None:
            raise RuntimeError("listener bug")

        seen: list[SessionState] = []
        session.subscribe(broken)
        session.subscribe(seen.append)
        await session.start()
        await session.aclose()

        assert seen == [SessionState(profile=None, loading=False)]

    @pytest.mark.asyncio
    async def test_unsubscribe(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        session = SessionContext(credentials, profiles)
        seen: list[SessionState] = []
        unsubscribe = session.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        await session.start()
        await session.aclose()

        assert seen == []


@pytest.mark.unit
class TestActions:
    @pytest.mark.asyncio
    async def test_action_raises_loading_flag(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            with session.action():
                assert session.loading is True
                with session.action():
                    assert session.loading is True
                assert session.loading is True
            assert session.loading is False
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_events_during_action_are_not_published(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        await _seed_account(credentials, profiles)
        session = SessionContext(credentials, profiles)
        await session.start()
        seen: list[SessionState] = []
        session.subscribe(seen.append)
        try:
            with session.action():
                await credentials.verify("a@b.com", "secret1")
                await session.drain()
                await credentials.invalidate_session()
                session.publish(None)
        finally:
            await session.aclose()

        assert all(state.profile is None for state in seen)

    @pytest.mark.asyncio
    async def test_publish_keeps_loading_while_action_in_flight(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            with session.action():
                session.publish(profile)
                assert session.state == SessionState(profile=profile, loading=True)
            assert session.state == SessionState(profile=profile, loading=False)
        finally:
            await session.aclose()


@pytest.mark.unit
class TestHasPermission:
    @pytest.mark.asyncio
    async def test_false_without_profile(
        self,
        credentials: InMemoryCredentialStore,
        profiles: InMemoryProfileStore,
        permissions: StaticPermissionChecker,
    ) -> None:
        session = SessionContext(credentials, profiles, permissions)
        assert await session.has_permission("projects.create") is False

    @pytest.mark.asyncio
    async def test_delegates_for_current_profile(
        self,
        credentials: InMemoryCredentialStore,
        profiles: InMemoryProfileStore,
        permissions: StaticPermissionChecker,
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        permissions.grant(profile.id, "projects.create")
        session = SessionContext(credentials, profiles, permissions)
        session.publish(profile)

        assert await session.has_permission("projects.create") is True
        assert await session.has_permission("projects.delete") is False

    @pytest.mark.asyncio
    async def test_false_without_checker(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        session = SessionContext(credentials, profiles)
        session.publish(profile)

        assert await session.has_permission("projects.create") is False

    @pytest.mark.asyncio
    async def test_fails_closed_when_checker_raises(
        self, credentials: InMemoryCredentialStore, profiles: InMemoryProfileStore
    ) -> None:
        profile = await _seed_account(credentials, profiles)
        checker = AsyncMock()
        checker.has_permission.side_effect = StoreUnavailableError("permissions")
        session = SessionContext(credentials, profiles, checker)
        session.publish(profile)

        assert await session.has_permission("projects.create") is False
        checker.has_permission.assert_awaited_once_with(profile.id, "projects.create")


@pytest.mark.unit
class TestResolutionNeverRaises:
    @pytest.mark.asyncio
    async def test_start_with_exhausted_pool(self, credentials: InMemoryCredentialStore) -> None:
        await _seed_account(credentials, None)
        await credentials.verify("a@b.com", "secret1")
        exhausted = MagicMock(
            side_effect=SQLAlchemyTimeoutError(
                "QueuePool limit of size 5 overflow 2 reached, connection timed out"
            )
        )

        session = SessionContext(credentials, SqlProfileRepository(exhausted))
        await session.start()
        try:
            assert session.state == SessionState(profile=None, loading=False)
        finally:
            await session.aclose()

    @pytest.mark.asyncio
    async def test_start_with_unexpected_store_error(
        self, credentials: InMemoryCredentialStore
    ) -> None:
        await _seed_account(credentials, None)
        await credentials.verify("a@b.com", "secret1")
        profiles = AsyncMock()
        profiles.get.side_effect = RuntimeError("boom")

        session = SessionContext(credentials, profiles)
        await session.start()
        try:
            assert session.state == SessionState(profile=None, loading=False)

            await credentials.verify("a@b.com", "secret1")
            await session.drain()
            assert session.state == SessionState(profile=None, loading=False)
        finally:
            await session.aclose()
