"""SQLite database engine, schema, and ID counters via SQLAlchemy Core."""

from shelfctl.infrastructure.database.counters import next_sequential_id
from shelfctl.infrastructure.database.engine import create_db_engine, db_path_for, init_database
from shelfctl.infrastructure.database.schema import (
    books,
    event_wal,
    id_counters,
    loans,
    members,
    metadata,
)

__all__ = [
    "books",
    "create_db_engine",
    "db_path_for",
    "event_wal",
    "id_counters",
    "init_database",
    "loans",
    "members",
    "metadata",
    "next_sequential_id",
]
