"""Unit tests for sign-out, password and verification operations."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from qualifind.domain.identity.infrastructure.in_memory import OutboundEmail
from qualifind.domain.identity.session_context import SessionState
from qualifind.foundation.domain.exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    InvalidInvitationError,
    StoreUnavailableError,
    ValidationError,
)
from tests.helpers import IdentityHarness


@pytest.mark.unit
class TestSignOut:
    @pytest.mark.asyncio
    async def test_clears_session(self, harness: IdentityHarness) -> None:
        async with harness:
            await harness.engine.register("a@b.com", "secret1", "Ada", "Built Inc", "contractor")

            await harness.engine.sign_out()

            assert harness.session.state == SessionState(profile=None, loading=False)
            assert await harness.credentials.current_session() is None
            assert await harness.session.has_permission("projects.create") is False

    @pytest.mark.asyncio
    async def test_store_failure_still_clears_local_state(
        self, harness: IdentityHarness
    ) -> None:
        async with harness:
            await harness.engine.register("a@b.com", "secret1", "Ada", "Built Inc", "contractor")
            harness.credentials.invalidate_session = AsyncMock(  # type: ignore[method-assign]
                side_effect=StoreUnavailableError("credentials")
            )

            with pytest.raises(StoreUnavailableError):
                await harness.engine.sign_out()

            assert harness.session.state == SessionState(profile=None, loading=False)


@pytest.mark.unit
class TestPasswordOperations:
    @pytest.mark.asyncio
    async def test_request_password_reset_uses_configured_redirect(
        self, harness: IdentityHarness
    ) -> None:
        async with harness:
            await harness.engine.register("a@b.com", "secret1", "Ada", "", "contractor")
            await harness.engine.wait_for_background()
            harness.credentials.outbox.clear()

            await harness.engine.request_password_reset(" a@b.com ")

            assert harness.credentials.outbox == [
                OutboundEmail(
                    kind="recovery",
                    email="a@b.com",
                    redirect_to=harness.settings.password_reset_redirect_url,
                )
            ]

    @pytest.mark.asyncio
    async def test_update_password(self, harness: IdentityHarness) -> None:
        async with harness:
            await harness.engine.register("a@b.com", "secret1", "Ada", "", "contractor")

            await harness.engine.update_password("new-secret")
            await harness.engine.sign_out()

            with pytest.raises(InvalidCredentialsError):
                await harness.engine.sign_in("a@b.com", "secret1", "contractor")
            profile = await harness.engine.sign_in("a@b.com", "new-secret", "contractor")
            assert profile.email == "a@b.com"

    @pytest.mark.asyncio
    async def test_update_password_too_short(self, harness: IdentityHarness) -> None:
        async with harness:
            await harness.engine.register("a@b.com", "secret1", "Ada", "", "contractor")

            with pytest.raises(ValidationError, match="at least 6 characters") as exc_info:
                await harness.engine.update_password("12345")

            assert exc_info.value.field == "password"

    @pytest.mark.asyncio
    async def test_update_password_requires_session(self, harness: IdentityHarness) -> None:
        async with harness:
            with pytest.raises(AuthenticationError) as exc_info:
                await harness.engine.update_password("new-secret")

            assert exc_info.value.error_code == "NOT_AUTHENTICATED"


@pytest.mark.unit
class TestVerificationAndPreview:
    @pytest.mark.asyncio
    async def test_resend_verification(self, harness: IdentityHarness) -> None:
        async with harness:
            await harness.engine.register("a@b.com", "secret1", "Ada", "", "contractor")
            await harness.engine.wait_for_background()

            await harness.engine.resend_verification()

            assert harness.credentials.outbox == [
                OutboundEmail(kind="signup", email="a@b.com"),
                OutboundEmail(kind="signup", email="a@b.com"),
            ]

    @pytest.mark.asyncio
    async def test_resend_verification_requires_profile(self, harness: IdentityHarness) -> None:
        async with harness:
            with pytest.raises(AuthenticationError) as exc_info:
                await harness.engine.resend_verification()

            assert exc_info.value.error_code == "NOT_AUTHENTICATED"
            assert exc_info.value.message == "Sign in to verify your email address."

    @pytest.mark.asyncio
    async def test_preview_invitation(self, harness: IdentityHarness) -> None:
        async with harness:
            record = await harness.engine.preview_invitation("ABC12345")

            assert record.contractor_name == "Built Inc"

    @pytest.mark.asyncio
    async def test_preview_invitation_rejects_short_code(self, harness: IdentityHarness) -> None:
        async with harness:
            with pytest.raises(InvalidInvitationError) as exc_info:
                await harness.engine.preview_invitation("AB")

            assert exc_info.value.reason == "malformed"
