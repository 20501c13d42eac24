"""Repository for the invitations table.

Status transitions are single guarded UPDATE statements, so concurrent
redemptions of one code are serialized by the database: the row lock taken
by the first UPDATE makes the second re-evaluate ``status = 'pending'`` and
match nothing.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from qualifind.foundation.domain.exceptions import StoreUnavailableError
from qualifind.foundation.domain.invitation import Invitation
from qualifind.foundation.domain.invitation_value_objects import InvitationStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

_FIND_BY_CODE_SQL = """
SELECT i.id, i.email, i.general_contractor_id, COALESCE(p.name, ''),
       i.code, i.status, i.created_at, i.expires_at
FROM invitations i
LEFT JOIN profiles p ON p.id = i.general_contractor_id
WHERE i.code = :code
"""

_ACCEPT_SQL = """
UPDATE invitations
SET status = 'accepted'
WHERE code = :code
  AND status = 'pending'
  AND (expires_at IS NULL OR expires_at > :now)
"""

_EXPIRE_SQL = """
UPDATE invitations
SET status = 'expired'
WHERE code = :code
  AND status = 'pending'
  AND expires_at IS NOT NULL
  AND expires_at <= :now
"""

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS invitations (
    id VARCHAR(255) PRIMARY KEY,
    email VARCHAR(255) NOT NULL,
    general_contractor_id VARCHAR(255) NOT NULL,
    code VARCHAR(255) NOT NULL UNIQUE,
    status VARCHAR(16) NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'accepted', 'expired')),
    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
    expires_at TIMESTAMP WITH TIME ZONE
);

CREATE INDEX IF NOT EXISTS idx_invitations_contractor_status
    ON invitations (general_contractor_id, status);
"""


def _row_to_invitation(row: Any) -> Invitation:
    return Invitation(
        id=str(row[0]),
        email=str(row[1]),
        contractor_id=str(row[2]),
        contractor_name=str(row[3]),
        code=str(row[4]),
        status=InvitationStatus(str(row[5])),
        created_at=row[6],
        expires_at=row[7],
    )


class SqlInvitationRepository:
    """Invitation registry backed by the ``invitations`` table.

    The issuing contractor's display name is joined in from ``profiles``.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def find_by_code(self, code: str) -> Invitation | None:
        return await self._run(partial(self._find_by_code_sync, code))

    async def conditional_accept(self, code: str, now: datetime) -> bool:
        return await self._run(partial(self._transition_sync, _ACCEPT_SQL, code, now))

    async def mark_expired(self, code: str, now: datetime) -> bool:
        return await self._run(partial(self._transition_sync, _EXPIRE_SQL, code, now))

    async def _run(self, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except SQLAlchemyError as err:
            logger.error("invitation_store_error", extra={"error_type": type(err).__name__})
            raise StoreUnavailableError("invitations") from err

    def _find_by_code_sync(self, code: str) -> Invitation | None:
        with self._session_factory() as session:
            row = session.execute(text(_FIND_BY_CODE_SQL), {"code": code}).fetchone()
            if row is None:
                return None
            return _row_to_invitation(row)

    def _transition_sync(self, statement: str, code: str, now: datetime) -> bool:
        with self._session_factory() as session:
            result = session.execute(text(statement), {"code": code, "now": now})
            session.commit()
            return bool(result.rowcount == 1)

    @classmethod
    def ensure_table_exists(cls, session_factory: Callable[[], Session]) -> None:
        """Create the invitations table if it does not exist."""
        with session_factory() as session:
            session.execute(text(_CREATE_TABLE_SQL))
            session.commit()
        logger.info("invitations_table_ensured")
