"""Permission predicate evaluated by the ``has_permission`` SQL function."""

from __future__ import annotations

import asyncio
from functools import partial
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from qualifind.foundation.domain.exceptions import StoreUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.orm import Session

_HAS_PERMISSION_SQL = "SELECT has_permission(:user_id, :permission_name)"


class SqlPermissionChecker:
    """Delegates to a database-side ``has_permission(user_id, permission_name)``.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def has_permission(self, user_id: str, permission_name: str) -> bool:
        try:
            return await asyncio.to_thread(
                partial(self._has_permission_sync, user_id, permission_name)
            )
        except SQLAlchemyError as err:
            raise StoreUnavailableError("permissions") from err

    def _has_permission_sync(self, user_id: str, permission_name: str) -> bool:
        with self._session_factory() as session:
            value = session.execute(
                text(_HAS_PERMISSION_SQL),
                {"user_id": user_id, "permission_name": permission_name},
            ).scalar()
            return bool(value)
