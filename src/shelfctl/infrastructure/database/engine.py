"""Database engine setup for SQLite with WAL mode.

WAL mode lets readers proceed while a circulation transaction writes.
Write transactions open with ``BEGIN IMMEDIATE`` so the write lock is
taken up front: two writers queue on SQLite's busy timeout instead of
one failing late with a stale snapshot. Connections carrying the
``sqlite_begin="DEFERRED"`` execution option open a plain deferred
transaction and never touch the write lock. The DB is stored at
``{library_root}/.shelfctl/shelfctl.db``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, insert, inspect, select
from sqlalchemy.engine import Connection, Engine

from shelfctl.infrastructure.database.counters import SEQUENTIAL_PREFIXES
from shelfctl.infrastructure.database.schema import id_counters, metadata

DATA_DIRNAME = ".shelfctl"
DB_FILENAME = "shelfctl.db"


def db_path_for(library_root: Path) -> Path:
    """Location of the database file for a library root."""
    return library_root / DATA_DIRNAME / DB_FILENAME


def create_db_engine(db_path: Path, *, busy_timeout: float = 5.0) -> Engine:
    """Create a SQLite engine with WAL mode, foreign keys, and immediate transactions."""
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        # Hand transaction control to the "begin" listener below.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn: Connection) -> None:
        mode = conn.get_execution_options().get("sqlite_begin", "IMMEDIATE")
        conn.exec_driver_sql(f"BEGIN {mode}")

    return engine


def init_database(library_root: Path, *, busy_timeout: float = 5.0) -> Engine:
    """Initialize the database at ``{library_root}/.shelfctl/shelfctl.db``.

    Creates the ``.shelfctl/`` directory structure, all tables from
    :data:`schema.metadata`, and seeds the ``id_counters`` table. A
    freshly created database is stamped at the current Alembic head.

    Idempotent — safe to call on an existing library.

    Returns the engine ready for use.
    """
    data_dir = library_root / DATA_DIRNAME
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "backups").mkdir(exist_ok=True)
    (data_dir / "plugins").mkdir(exist_ok=True)

    db_path = data_dir / DB_FILENAME
    engine = create_db_engine(db_path, busy_timeout=busy_timeout)

    fresh = "books" not in inspect(engine).get_table_names()
    metadata.create_all(engine)
    _seed_counters(engine)

    if fresh:
        from shelfctl.infrastructure.database.migrations import stamp_head

        stamp_head(db_path)
    return engine


def _seed_counters(engine: Engine) -> None:
    """Insert initial counter rows for every sequential prefix if missing."""
    with engine.begin() as conn:
        for prefix in SEQUENTIAL_PREFIXES:
            row = conn.execute(
                select(id_counters.c.type_prefix).where(id_counters.c.type_prefix == prefix)
            ).first()
            if row is None:
                conn.execute(insert(id_counters).values(type_prefix=prefix, next_value=1))
