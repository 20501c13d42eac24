"""Port interface for the external authorization predicate."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class PermissionCheckerPort(Protocol):
    """Answers whether a profile holds a named permission."""

    async def has_permission(self, user_id: str, permission_name: str) -> bool:
        """Evaluate the predicate for ``(user_id, permission_name)``."""
        ...
