"""Process-wide reactive session state.

Exposes the resolved profile to the rest of the application and keeps it in
step with the credential store's session-change stream.

Writers:
    - IdentityReconciliationEngine, through ``action()`` and ``publish()``
    - the session-change handler owned by this class

Everything else only reads (properties, ``subscribe``, ``has_permission``).

Usage:
    session = SessionContext(credentials, profiles, permissions)
    await session.start()
    unsubscribe = session.subscribe(lambda state: render(state))
    ...
    await session.aclose()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from qualifind.foundation.domain.exceptions import DomainError

if TYPE_CHECKING:
    from qualifind.foundation.domain.ports import (
        CredentialStorePort,
        PermissionCheckerPort,
        ProfileStorePort,
        Unsubscribe,
    )
    from qualifind.foundation.domain.principal import Principal, SessionEvent
    from qualifind.foundation.domain.profile import Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionState:
    """Snapshot published to subscribers.

    Attributes:
        profile: Resolved profile, or None when signed out / unresolved.
        loading: True during startup resolution and explicit auth actions.
    """

    profile: Profile | None
    loading: bool

    @property
    def is_authenticated(self) -> bool:
        return self.profile is not None


StateListener = Callable[[SessionState], None]


class SessionContext:
    """Single-writer reactive cell holding the current session.

    Session-change events are queued and handled one at a time by a single
    worker task, so each event is fully resolved and published before the
    next one starts. The handler never repairs missing profiles; that is
    ``sign_in``'s job.

    Attributes:
        _credentials: Credential store (event source, current session).
        _profiles: Profile store (read-only here).
        _permissions: Optional authorization predicate.
    """

    def __init__(
        self,
        credentials: CredentialStorePort,
        profiles: ProfileStorePort,
        permissions: PermissionCheckerPort | None = None,
    ) -> None:
        self._credentials = credentials
        self._profiles = profiles
        self._permissions = permissions
        self._state = SessionState(profile=None, loading=True)
        self._listeners: list[StateListener] = []
        self._events: asyncio.Queue[tuple[SessionEvent, Principal | None]] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._actions_in_flight = 0
        self._generation = 0

    # -- Read side --

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def current_profile(self) -> Profile | None:
        return self._state.profile

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def loading(self) -> bool:
        return self._state.loading

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called with every new SessionState.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def has_permission(self, permission_name: str) -> bool:
        """Check a permission for the current profile. Fails closed, never raises.

        Args:
            permission_name: Permission to check.

        Returns:
            False when no profile is resolved, no checker is configured,
            or the checker fails; otherwise the checker's answer.
        """
        profile = self._state.profile
        if profile is None or self._permissions is None:
            return False
        try:
            return bool(await self._permissions.has_permission(profile.id, permission_name))
        except Exception:
            logger.exception(
                "permission_check_failed",
                extra={"user_id": profile.id, "permission": permission_name},
            )
            return False

    # -- Lifecycle --

    async def start(self) -> None:
        """Subscribe to session changes and resolve any persisted session.

        Idempotent: the subscription is made once for the process lifetime.
        """
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._credentials.subscribe(self._on_session_change)
        self._worker = asyncio.create_task(self._run(), name="session-context-worker")

        generation = self._generation
        profile = await self._resolve_current()
        if generation == self._generation:
            self._set(profile, loading=self._actions_in_flight > 0)
        logger.info(
            "session_context_started",
            extra={"authenticated": self.is_authenticated},
        )

    async def drain(self) -> None:
        """Wait until every queued session-change event has been handled."""
        await self._events.join()

    async def aclose(self) -> None:
        """Unsubscribe and stop the worker task."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    # -- Write side (engine only) --

    @contextmanager
    def action(self) -> Iterator[None]:
        """Mark an explicit auth action in flight.

        Raises ``loading`` for the duration. Session-change events arriving
        meanwhile are not published; the action publishes its own outcome.
        """
        self._actions_in_flight += 1
        self._set(self._state.profile, loading=True)
        try:
            yield
        finally:
            self._actions_in_flight -= 1
            self._set(self._state.profile, loading=self._actions_in_flight > 0)

    def publish(self, profile: Profile | None) -> None:
        """Publish the outcome of an explicit auth action."""
        self._generation += 1
        self._set(profile, loading=self._actions_in_flight > 0)

    # -- Internals --

    def _on_session_change(self, event: SessionEvent, principal: Principal | None) -> None:
        self._events.put_nowait((event, principal))

    async def _run(self) -> None:
        while True:
            event, _ = await self._events.get()
            try:
                await self._handle(event)
            except Exception:
                logger.exception("session_change_handler_failed", extra={"event": str(event)})
            finally:
                self._events.task_done()

    async def _handle(self, event: SessionEvent) -> None:
        if self._actions_in_flight:
            logger.debug("session_change_deferred_to_action", extra={"event": str(event)})
            return

        generation = self._generation
        principal_id, profile = await self._resolve_principal()
        if generation != self._generation or self._actions_in_flight:
            logger.debug("session_change_superseded", extra={"event": str(event)})
            return

        current = self._state.profile
        if profile is None and current is not None and current.id == principal_id:
            # Published by sign-in/register while the row could not be written.
            logger.debug("session_profile_retained", extra={"principal_id": principal_id})
            return
        self._set(profile, loading=False)

    async def _resolve_current(self) -> Profile | None:
        _, profile = await self._resolve_principal()
        return profile

    async def _resolve_principal(self) -> tuple[str | None, Profile | None]:
        """Resolve the credential store's current principal and its profile.

        Reads current truth rather than the event payload so a stale
        SIGNED_IN processed after a sign-out cannot resurrect the session.
        Never raises: any failure resolves to no profile.
        """
        try:
            principal = await self._credentials.current_session()
            if principal is None:
                return None, None
            profile = await self._profiles.get(principal.id)
        except DomainError:
            logger.warning("session_resolution_failed", exc_info=True)
            return None, None
        except Exception:
            logger.exception("session_resolution_error")
            return None, None
        if profile is None:
            logger.info("session_profile_missing", extra={"principal_id": principal.id})
        return principal.id, profile

    def _set(self, profile: Profile | None, *, loading: bool) -> None:
        new_state = SessionState(profile=profile, loading=loading)
        if new_state == self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("session_listener_failed")
