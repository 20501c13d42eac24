"""Test helpers shared across the identity core test packages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from qualifind.domain.identity.infrastructure.in_memory import (
    InMemoryCredentialStore,
    InMemoryInvitationRegistry,
    InMemoryProfileStore,
    StaticPermissionChecker,
)
from qualifind.domain.identity.reconciliation import IdentityReconciliationEngine
from qualifind.domain.identity.session_context import SessionContext
from qualifind.domain.identity.settings import IdentitySettings
from qualifind.foundation.domain.invitation import Invitation
from qualifind.foundation.domain.invitation_value_objects import InvitationStatus

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class IdentityHarness:
    """In-memory adapters wired to a SessionContext and engine.

    Use as ``async with harness:`` to start the session context; on exit it
    waits for detached work and stops the worker.
    """

    credentials: InMemoryCredentialStore
    profiles: InMemoryProfileStore
    invitations: InMemoryInvitationRegistry
    permissions: StaticPermissionChecker
    clock: FakeClock
    settings: IdentitySettings
    session: SessionContext = field(init=False)
    engine: IdentityReconciliationEngine = field(init=False)

    def __post_init__(self) -> None:
        self.session = SessionContext(self.credentials, self.profiles, self.permissions)
        self.engine = IdentityReconciliationEngine(
            self.credentials,
            self.profiles,
            self.invitations,
            self.session,
            settings=self.settings,
            clock=self.clock,
        )

    async def __aenter__(self) -> IdentityHarness:
        await self.session.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.engine.wait_for_background()
        await self.session.aclose()


def make_invitation(
    code: str = "ABC12345",
    *,
    contractor_id: str = "c1",
    contractor_name: str = "Built Inc",
    status: InvitationStatus = InvitationStatus.PENDING,
    expires_at: datetime | None = None,
    email: str = "sub@example.com",
) -> Invitation:
    return Invitation(
        id=f"inv-{code.lower()}",
        email=email,
        contractor_id=contractor_id,
        contractor_name=contractor_name,
        code=code,
        status=status,
        created_at=FIXED_NOW - timedelta(days=1),
        expires_at=expires_at,
    )
