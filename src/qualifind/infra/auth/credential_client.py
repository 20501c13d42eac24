"""Async HTTP client for a GoTrue-style auth REST API.

Implements CredentialStorePort over the provider's password-grant,
refresh-token, signup, logout, resend, recover and user endpoints. The current
session is kept in memory and every change is broadcast to subscribers,
mirroring the provider SDK's auth-state-change stream.

Session persistence is the caller's concern: read ``session`` after a change,
store the tokens, and hand them back to ``restore_session`` on the next start.
An access token close to expiry is refreshed the next time
``current_session`` is asked for.

Error mapping:
- Transport errors and 5xx responses -> StoreUnavailableError
- 4xx on /token (password grant) -> InvalidCredentialsError (provider message passed through)
- 4xx on /token (refresh grant) -> AuthenticationError SESSION_EXPIRED, session cleared
- 4xx on /signup -> SignupRejectedError (provider message passed through)
- 4xx elsewhere -> CredentialStoreError
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx

from qualifind.foundation.domain.exceptions import (
    AuthenticationError,
    DomainError,
    InvalidCredentialsError,
    SignupRejectedError,
    StoreUnavailableError,
    ValidationError,
)
from qualifind.foundation.domain.principal import Principal, PrincipalMetadata, SessionEvent

if TYPE_CHECKING:
    from collections.abc import Callable

    from qualifind.foundation.domain.ports import SessionListener, Unsubscribe

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10.0
_REFRESH_MARGIN = timedelta(seconds=60)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CredentialStoreError(DomainError):
    """Raised when the auth API refuses a non-credential request.

    Examples: rate-limited resend, unknown recovery email.

    Attributes:
        status_code: HTTP status from the auth API.
    """

    error_code: str = "CREDENTIAL_STORE_ERROR"

    def __init__(self, message: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(message, {"status_code": status_code})


@dataclass(frozen=True, slots=True)
class StoredSession:
    """Tokens and principal for the active session.

    Attributes:
        principal: Signed-in principal.
        access_token: Bearer token for authenticated endpoints.
        refresh_token: Opaque refresh token.
        expires_at: Access token expiry (UTC), None when unknown.
    """

    principal: Principal
    access_token: str
    refresh_token: str
    expires_at: datetime | None = None


def parse_principal(user: dict[str, Any]) -> Principal:
    """Build a Principal from the auth API's user object."""
    return Principal(
        id=str(user["id"]),
        email=str(user.get("email") or ""),
        email_verified=bool(user.get("email_confirmed_at")),
        metadata=PrincipalMetadata.from_mapping(user.get("user_metadata")),
    )


def _error_message(response: httpx.Response) -> str:
    """Extract the provider's human-readable message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or "Request rejected"
    if isinstance(body, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or "Request rejected"


class CredentialStoreClient:
    """Credential store adapter for the auth REST API.

    Supports both shared and owned httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused (caller manages lifecycle).
    - Otherwise an internal client is created lazily; call :meth:`aclose`.

    Args:
        base_url: Auth API base URL (e.g. "https://x.example.co/auth/v1").
        api_key: Publishable API key sent as the ``apikey`` header.
        email_redirect_url: Link target for sign-up confirmation emails.
        timeout: HTTP request timeout in seconds.
        client: Optional shared httpx.AsyncClient instance.
        clock: Returns the current UTC time (token expiry checks).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        email_redirect_url: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._email_redirect_url = email_redirect_url
        self._timeout = timeout
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client
        self._clock = clock
        self._session: StoredSession | None = None
        self._listeners: list[SessionListener] = []

    # -- CredentialStorePort --

    async def verify(self, email: str, password: str) -> Principal:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if not response.is_success:
            raise InvalidCredentialsError(_error_message(response))

        session = self._parse_session(response.json())
        if session is None:
            raise InvalidCredentialsError()
        self._set_session(session, SessionEvent.SIGNED_IN)
        return session.principal

    async def create(
        self,
        email: str,
        password: str,
        metadata: PrincipalMetadata,
    ) -> Principal:
        params = {"redirect_to": self._email_redirect_url} if self._email_redirect_url else None
        response = await self._request(
            "POST",
            "/signup",
            params=params,
            json={"email": email, "password": password, "data": metadata.to_mapping()},
        )
        if not response.is_success:
            raise SignupRejectedError(_error_message(response), status_code=response.status_code)

        body: dict[str, Any] = response.json()
        session = self._parse_session(body)
        if session is not None:
            self._set_session(session, SessionEvent.SIGNED_IN)
            return session.principal
        # Email confirmation pending: the API returns the bare user, no session.
        return parse_principal(body)

    async def invalidate_session(self) -> None:
        """Revoke the session server-side (best-effort) and clear it locally."""
        session = self._session
        if session is not None:
            try:
                response = await self._request("POST", "/logout", token=session.access_token)
                if not response.is_success:
                    logger.warning(
                        "credential_logout_rejected",
                        extra={"status": response.status_code},
                    )
            except StoreUnavailableError:
                logger.warning("credential_logout_unreachable")
        self._set_session(None, SessionEvent.SIGNED_OUT)

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def current_session(self) -> Principal | None:
        """Return the signed-in principal, refreshing a token close to expiry.

        Raises:
            StoreUnavailableError: If a due refresh cannot reach the auth API.
        """
        session = self._session
        if session is None:
            return None
        if self._is_due_for_refresh(session):
            try:
                return await self.refresh_session()
            except AuthenticationError:
                return None
        return session.principal

    # -- Session persistence --

    @property
    def session(self) -> StoredSession | None:
        """Tokens of the active session, for the caller to persist."""
        return self._session

    async def restore_session(self, access_token: str, refresh_token: str) -> Principal | None:
        """Re-establish a session from previously persisted tokens.

        Looks the user up with the access token and falls back to the refresh
        token when the access token is rejected. Emits ``INITIAL_SESSION``
        with the restored principal, or with None if both tokens are dead.

        Returns:
            The restored principal, or None.

        Raises:
            StoreUnavailableError: If the auth API cannot be reached.
        """
        response = await self._request("GET", "/user", token=access_token)
        session: StoredSession | None
        if response.is_success:
            session = StoredSession(parse_principal(response.json()), access_token, refresh_token)
        elif response.status_code in (401, 403):
            session = await self._refresh_grant(refresh_token)
        else:
            raise CredentialStoreError(_error_message(response), response.status_code)

        self._set_session(session, SessionEvent.INITIAL_SESSION)
        logger.info("credential_session_restored", extra={"restored": session is not None})
        return session.principal if session else None

    async def refresh_session(self) -> Principal:
        """Exchange the refresh token for a new access token.

        Emits ``TOKEN_REFRESHED`` on success. A rejected refresh token ends
        the session and emits ``SIGNED_OUT``.

        Raises:
            AuthenticationError: ``NOT_AUTHENTICATED`` without a session,
                ``SESSION_EXPIRED`` if the refresh token is rejected.
            StoreUnavailableError: If the auth API cannot be reached.
        """
        current = self._session
        if current is None:
            raise AuthenticationError("No session to refresh.", error_code="NOT_AUTHENTICATED")

        session = await self._refresh_grant(current.refresh_token)
        if session is None:
            logger.warning("credential_refresh_rejected")
            self._set_session(None, SessionEvent.SIGNED_OUT)
            raise AuthenticationError(
                "Your session has expired. Please sign in again.", error_code="SESSION_EXPIRED"
            )
        self._set_session(session, SessionEvent.TOKEN_REFRESHED)
        return session.principal

    async def request_email_verification(self, email: str) -> None:
        response = await self._request(
            "POST", "/resend", json={"type": "signup", "email": email}
        )
        if not response.is_success:
            raise CredentialStoreError(_error_message(response), response.status_code)

    async def request_password_reset(self, email: str, redirect_to: str) -> None:
        response = await self._request(
            "POST",
            "/recover",
            params={"redirect_to": redirect_to},
            json={"email": email},
        )
        if not response.is_success:
            raise CredentialStoreError(_error_message(response), response.status_code)

    async def update_password(self, new_password: str) -> None:
        session = self._session
        if session is None:
            raise AuthenticationError(
                "Sign in to change your password.", error_code="NOT_AUTHENTICATED"
            )
        response = await self._request(
            "PUT", "/user", json={"password": new_password}, token=session.access_token
        )
        if response.status_code == 401:
            raise AuthenticationError(_error_message(response), error_code="SESSION_EXPIRED")
        if response.status_code == 422:
            raise ValidationError("password", _error_message(response))
        if not response.is_success:
            raise CredentialStoreError(_error_message(response), response.status_code)

        principal = parse_principal(response.json())
        self._set_session(
            dataclasses.replace(session, principal=principal),
            SessionEvent.USER_UPDATED,
        )

    # -- Internals --

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> httpx.Response:
        """Send a request; transport failures and 5xx become StoreUnavailableError."""
        headers = {"apikey": self._api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        client = self._get_client()
        try:
            response = await client.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TransportError as exc:
            logger.error("credential_store_unreachable", extra={"path": path})
            raise StoreUnavailableError("credentials") from exc

        if response.status_code >= 500:
            logger.error(
                "credential_store_server_error",
                extra={"path": path, "status": response.status_code},
            )
            raise StoreUnavailableError("credentials", status_code=response.status_code)
        return response

    async def _refresh_grant(self, refresh_token: str) -> StoredSession | None:
        """POST the refresh-token grant; None when the token is rejected."""
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if not response.is_success:
            return None
        return self._parse_session(response.json())

    def _is_due_for_refresh(self, session: StoredSession) -> bool:
        if session.expires_at is None:
            return False
        return session.expires_at - _REFRESH_MARGIN <= self._clock()

    def _parse_session(self, body: dict[str, Any]) -> StoredSession | None:
        if not body.get("access_token") or not isinstance(body.get("user"), dict):
            return None
        expires_at: datetime | None = None
        if isinstance(body.get("expires_at"), int | float):
            expires_at = datetime.fromtimestamp(body["expires_at"], UTC)
        elif isinstance(body.get("expires_in"), int | float):
            expires_at = self._clock() + timedelta(seconds=body["expires_in"])
        return StoredSession(
            principal=parse_principal(body["user"]),
            access_token=str(body["access_token"]),
            refresh_token=str(body.get("refresh_token", "")),
            expires_at=expires_at,
        )

    def _set_session(self, session: StoredSession | None, event: SessionEvent) -> None:
        self._session = session
        principal = session.principal if session else None
        for listener in list(self._listeners):
            listener(event, principal)

    def _get_client(self) -> httpx.AsyncClient:
        """Return the shared or lazily-created httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it."""
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None
