"""
Database module - SQLite connection, sessions and schema management.
"""
from capstone.db.sqlite import (
    get_db_session,
    execute_raw_sql,
    init_database,
    reset_database,
    check_database_connection,
)

__all__ = [
    "get_db_session",
    "execute_raw_sql",
    "init_database",
    "reset_database",
    "check_database_connection",
]
