"""
Database module for the soulcrush application tracker.
"""

from soulcrush.database.connection import (
    get_connection,
    get_db_connection,
    ensure_schema,
    init_database,
    reset_database,
    check_database_health,
    row_to_dict,
)

__all__ = [
    "get_connection",
    "get_db_connection",
    "ensure_schema",
    "init_database",
    "reset_database",
    "check_database_health",
    "row_to_dict",
]
