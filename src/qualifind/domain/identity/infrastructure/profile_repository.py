"""Repository for the profiles table.

Sync SQLAlchemy sessions run in a worker thread via ``asyncio.to_thread`` so
the event loop never blocks on the database.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from qualifind.foundation.domain.exceptions import NotFoundError, StoreUnavailableError
from qualifind.foundation.domain.profile import UPDATABLE_FIELDS, Profile
from qualifind.foundation.domain.user_value_objects import Role

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Domain field -> column name
_COLUMNS: dict[str, str] = {
    "display_name": "name",
    "organization": "company_name",
    "email_verified": "email_verified",
    "last_sign_in": "last_sign_in",
}

_SELECT_SQL = """
SELECT id, email, name, role, company_name, email_verified,
       created_at, last_sign_in, invited_by
FROM profiles
WHERE id = :id
"""

_INSERT_SQL = """
INSERT INTO profiles
    (id, email, name, role, company_name, email_verified,
     created_at, last_sign_in, invited_by, updated_at)
VALUES
    (:id, :email, :name, :role, :company_name, :email_verified,
     :created_at, :last_sign_in, :invited_by, :created_at)
ON CONFLICT (id) DO NOTHING
"""

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS profiles (
    id VARCHAR(255) PRIMARY KEY,
    email VARCHAR(255) NOT NULL,
    name VARCHAR(255) NOT NULL DEFAULT 'User',
    role VARCHAR(32) NOT NULL CHECK (role IN ('contractor', 'subcontractor')),
    company_name VARCHAR(255) NOT NULL DEFAULT '',
    email_verified BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
    last_sign_in TIMESTAMP WITH TIME ZONE,
    invited_by VARCHAR(255),
    updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_profiles_invited_by
    ON profiles (invited_by)
    WHERE invited_by IS NOT NULL;
"""


def _row_to_profile(row: Any) -> Profile:
    return Profile(
        id=str(row[0]),
        email=str(row[1]),
        display_name=str(row[2]),
        role=Role(str(row[3])),
        organization=str(row[4] or ""),
        email_verified=bool(row[5]),
        created_at=row[6],
        last_sign_in=row[7],
        invited_by=str(row[8]) if row[8] is not None else None,
    )


class SqlProfileRepository:
    """Profile store backed by the ``profiles`` table.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    async def get(self, profile_id: str) -> Profile | None:
        return await self._run(partial(self._get_sync, profile_id))

    async def insert(self, profile: Profile) -> bool:
        """INSERT ... ON CONFLICT DO NOTHING; False when the row already existed."""
        return await self._run(partial(self._insert_sync, profile))

    async def update(self, profile_id: str, changes: Mapping[str, Any]) -> None:
        await self._run(partial(self._update_sync, profile_id, dict(changes)))

    async def _run(self, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except SQLAlchemyError as err:
            logger.error("profile_store_error", extra={"error_type": type(err).__name__})
            raise StoreUnavailableError("profiles") from err

    # -- Sync implementations --

    def _get_sync(self, profile_id: str) -> Profile | None:
        with self._session_factory() as session:
            row = session.execute(text(_SELECT_SQL), {"id": profile_id}).fetchone()
            if row is None:
                return None
            return _row_to_profile(row)

    def _insert_sync(self, profile: Profile) -> bool:
        with self._session_factory() as session:
            result = session.execute(
                text(_INSERT_SQL),
                {
                    "id": profile.id,
                    "email": profile.email,
                    "name": profile.display_name,
                    "role": profile.role.value,
                    "company_name": profile.organization,
                    "email_verified": profile.email_verified,
                    "created_at": profile.created_at,
                    "last_sign_in": profile.last_sign_in,
                    "invited_by": profile.invited_by,
                },
            )
            session.commit()
            return bool(result.rowcount == 1)

    def _update_sync(self, profile_id: str, changes: dict[str, Any]) -> None:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            msg = f"Profile fields cannot be updated: {sorted(unknown)}"
            raise ValueError(msg)

        assignments = [f"{_COLUMNS[field]} = :{field}" for field in sorted(changes)]
        assignments.append("updated_at = :updated_at")
        params = {**changes, "id": profile_id, "updated_at": datetime.now(UTC)}

        with self._session_factory() as session:
            result = session.execute(
                text(f"UPDATE profiles SET {', '.join(assignments)} WHERE id = :id"),
                params,
            )
            session.commit()
            if result.rowcount == 0:
                raise NotFoundError("Profile", profile_id)

    @classmethod
    def ensure_table_exists(cls, session_factory: Callable[[], Session]) -> None:
        """Create the profiles table if it does not exist."""
        with session_factory() as session:
            session.execute(text(_CREATE_TABLE_SQL))
            session.commit()
        logger.info("profiles_table_ensured")
