"""Qualifind Infra Persistence -- database engine and session factory."""

from qualifind.infra.persistence.database import (
    DatabaseManager,
    DatabaseSettings,
    get_database_manager,
)

__all__ = [
    "DatabaseManager",
    "DatabaseSettings",
    "get_database_manager",
]
