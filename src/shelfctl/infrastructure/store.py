"""LibraryStore — repository pattern with transaction and lock coordination.

The LibraryStore is the single dependency injected into every service. It
owns the database engine, the per-resource lock registry, and the plugin
event bus. :meth:`LibraryStore.transaction` yields a
:class:`StoreTransaction` whose catalog, member, and ledger methods all run
on one connection, so a loan write and its copy-count write commit or roll
back together.

Copy counters are only ever moved by guarded single-statement updates
(``take_copy`` / ``restore_copy``); there is no read-modify-write path.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import OperationalError

from shelfctl.infrastructure.database.counters import next_sequential_id
from shelfctl.infrastructure.database.engine import db_path_for, init_database
from shelfctl.infrastructure.database.schema import books, loans, members
from shelfctl.infrastructure.locks import LockRegistry

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from sqlalchemy import Connection, Row
    from sqlalchemy.engine import Engine

    from shelfctl.config.settings import ShelfSettings
    from shelfctl.plugins.event_bus import EventBus

logger = logging.getLogger(__name__)

ACTIVE = "active"
RETURNED = "returned"


class StoreBusy(Exception):
    """SQLite could not take its write lock within the busy timeout."""


def _is_lock_error(exc: OperationalError) -> bool:
    message = str(exc.orig).lower()
    return "database is locked" in message or "database is busy" in message


# ---------------------------------------------------------------------------
# StoreTransaction: yielded to callers within transaction()
# ---------------------------------------------------------------------------


@dataclass
class StoreTransaction:
    """Active unit of work over one DB connection."""

    conn: Connection

    def next_id(self, type_prefix: str) -> str:
        """Claim the next sequential ID inside this transaction."""
        return next_sequential_id(self.conn, type_prefix)

    # ------------------------------------------------------------------
    # Catalog store
    # ------------------------------------------------------------------

    def get_book(self, book_id: str) -> Row[Any] | None:
        return self.conn.execute(select(books).where(books.c.id == book_id)).first()

    def find_book_by_isbn(self, isbn: str) -> Row[Any] | None:
        return self.conn.execute(select(books).where(books.c.isbn == isbn)).first()

    def insert_book(self, values: dict[str, Any]) -> None:
        self.conn.execute(insert(books).values(**values))

    def update_book_fields(self, book_id: str, values: dict[str, Any]) -> None:
        """Update descriptive columns. Copy counters go through the guarded methods."""
        if "total_copies" in values or "available_copies" in values:
            msg = "copy counters must be changed through take/restore/set_copy_counts"
            raise ValueError(msg)
        self.conn.execute(update(books).where(books.c.id == book_id).values(**values))

    def take_copy(self, book_id: str, modified: str) -> bool:
        """Decrement ``available_copies`` if at least one copy is on the shelf.

        A single compare-and-update: returns False, changing nothing, when
        the book is missing or exhausted.
        """
        result = self.conn.execute(
            update(books)
            .where(books.c.id == book_id, books.c.available_copies > 0)
            .values(available_copies=books.c.available_copies - 1, modified=modified)
        )
        return result.rowcount == 1

    def restore_copy(self, book_id: str, modified: str) -> bool:
        """Increment ``available_copies`` unless it already equals the total.

        Returns False, changing nothing, when the increment would push the
        counter past ``total_copies`` or the book is missing.
        """
        result = self.conn.execute(
            update(books)
            .where(books.c.id == book_id, books.c.available_copies < books.c.total_copies)
            .values(available_copies=books.c.available_copies + 1, modified=modified)
        )
        return result.rowcount == 1

    def update_available_copies(self, book_id: str, new_value: int, modified: str) -> None:
        """Set ``available_copies`` outright (administrative resize only)."""
        self.conn.execute(
            update(books)
            .where(books.c.id == book_id)
            .values(available_copies=new_value, modified=modified)
        )

    def set_copy_counts(self, book_id: str, total: int, available: int, modified: str) -> None:
        """Set both counters in one statement so the CHECK bounds hold throughout."""
        self.conn.execute(
            update(books)
            .where(books.c.id == book_id)
            .values(total_copies=total, available_copies=available, modified=modified)
        )

    def delete_book(self, book_id: str) -> int:
        """Delete a book and its returned loans. Returns purged loan count."""
        purged = self.conn.execute(
            delete(loans).where(loans.c.book_id == book_id, loans.c.status == RETURNED)
        ).rowcount
        self.conn.execute(delete(books).where(books.c.id == book_id))
        return purged

    # ------------------------------------------------------------------
    # Member store
    # ------------------------------------------------------------------

    def get_member(self, member_id: str) -> Row[Any] | None:
        return self.conn.execute(select(members).where(members.c.id == member_id)).first()

    def find_member_by_email(self, email: str) -> Row[Any] | None:
        return self.conn.execute(select(members).where(members.c.email == email)).first()

    def insert_member(self, values: dict[str, Any]) -> None:
        self.conn.execute(insert(members).values(**values))

    def update_member_fields(self, member_id: str, values: dict[str, Any]) -> None:
        self.conn.execute(update(members).where(members.c.id == member_id).values(**values))

    def delete_member(self, member_id: str) -> int:
        """Delete a member and their returned loans. Returns purged loan count."""
        purged = self.conn.execute(
            delete(loans).where(loans.c.member_id == member_id, loans.c.status == RETURNED)
        ).rowcount
        self.conn.execute(delete(members).where(members.c.id == member_id))
        return purged

    # ------------------------------------------------------------------
    # Loan ledger
    # ------------------------------------------------------------------

    def get_loan(self, loan_id: str) -> Row[Any] | None:
        return self.conn.execute(select(loans).where(loans.c.id == loan_id)).first()

    def find_active_loan(self, book_id: str, member_id: str) -> Row[Any] | None:
        return self.conn.execute(
            select(loans).where(
                loans.c.book_id == book_id,
                loans.c.member_id == member_id,
                loans.c.status == ACTIVE,
            )
        ).first()

    def count_active_loans(
        self,
        *,
        book_id: str | None = None,
        member_id: str | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(loans).where(loans.c.status == ACTIVE)
        if book_id is not None:
            stmt = stmt.where(loans.c.book_id == book_id)
        if member_id is not None:
            stmt = stmt.where(loans.c.member_id == member_id)
        return int(self.conn.execute(stmt).scalar_one())

    def insert_loan(self, book_id: str, member_id: str, *, issued_by: str, issued_at: str) -> str:
        """Create an active loan row. Returns the new loan ID."""
        loan_id = self.next_id("LOAN-")
        self.conn.execute(
            insert(loans).values(
                id=loan_id,
                book_id=book_id,
                member_id=member_id,
                status=ACTIVE,
                issued_at=issued_at,
                returned_at=None,
                issued_by=issued_by,
            )
        )
        return loan_id

    def close_loan(self, loan_id: str, returned_at: str) -> bool:
        """Move an active loan to returned. False if it was not active."""
        result = self.conn.execute(
            update(loans)
            .where(loans.c.id == loan_id, loans.c.status == ACTIVE)
            .values(status=RETURNED, returned_at=returned_at)
        )
        return result.rowcount == 1

    def delete_loan(self, loan_id: str) -> None:
        self.conn.execute(delete(loans).where(loans.c.id == loan_id))


# ---------------------------------------------------------------------------
# LibraryStore: the repository
# ---------------------------------------------------------------------------


class LibraryStore:
    """Repository encapsulating database, lock, and event access.

    Constructed once at CLI startup from :class:`ShelfSettings`. Services
    receive the store via their :class:`BaseService` constructor.
    """

    def __init__(self, settings: ShelfSettings) -> None:
        self._settings = settings
        self._engine: Engine = init_database(
            self.root, busy_timeout=settings.database.busy_timeout
        )
        self._locks = LockRegistry(default_timeout=settings.circulation.lock_timeout)
        self._event_bus: EventBus | None = None

    @property
    def root(self) -> Path:
        """The library root directory."""
        return self._settings.library_root

    @property
    def db_path(self) -> Path:
        return db_path_for(self.root)

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def settings(self) -> ShelfSettings:
        return self._settings

    @property
    def locks(self) -> LockRegistry:
        return self._locks

    @property
    def event_bus(self) -> EventBus | None:
        """The plugin event bus (None if not initialized)."""
        return self._event_bus

    def init_event_bus(self, *, sync: bool = False, plugins: list[object] | None = None) -> None:
        """Initialize the notification event bus.

        Creates a PluginManager, discovers entry-point and local plugins,
        registers the built-in notifiers enabled by ``[notifications]``,
        then any extra *plugins*, and wires up the EventBus.
        """
        from shelfctl.plugins.builtins.notifiers import EmailNotifier, LogNotifier
        from shelfctl.plugins.event_bus import EventBus
        from shelfctl.plugins.manager import PluginManager

        pm = PluginManager()
        pm.discover_and_load(local_dir=self.root / ".shelfctl" / "plugins")

        config = self._settings.notifications
        if config.enabled:
            if config.log:
                pm.register_plugin(LogNotifier(), name="log-notifier")
            if config.email:
                pm.register_plugin(
                    EmailNotifier(config, library_name=self._settings.library.name),
                    name="email-notifier",
                )
        for plugin in plugins or []:
            pm.register_plugin(plugin)

        events = self._settings.events
        self._event_bus = EventBus(
            self._engine,
            pm,
            sync=sync,
            max_retries=events.max_retries,
            max_workers=events.max_workers,
        )

    @contextmanager
    def locked(self, kind: str, resource_id: str) -> Iterator[None]:
        """Hold the ``(kind, resource_id)`` lock with the configured timeout."""
        with self._locks.acquire(kind, resource_id):
            yield

    @contextmanager
    def transaction(self) -> Iterator[StoreTransaction]:
        """Atomic unit of work: commit on normal exit, roll back on any exception.

        Raises:
            StoreBusy: If SQLite's write lock stays contended past the busy timeout.
        """
        try:
            with self._engine.begin() as conn:
                yield StoreTransaction(conn=conn)
        except OperationalError as exc:
            if _is_lock_error(exc):
                raise StoreBusy(str(exc.orig)) from exc
            raise

    @contextmanager
    def reader(self) -> Iterator[StoreTransaction]:
        """Read-only access; anything written is rolled back on exit."""
        try:
            with self._engine.connect().execution_options(sqlite_begin="DEFERRED") as conn:
                yield StoreTransaction(conn=conn)
        except OperationalError as exc:
            if _is_lock_error(exc):
                raise StoreBusy(str(exc.orig)) from exc
            raise

    def close(self) -> None:
        """Drain in-flight notifications and release DB connections."""
        if self._event_bus is not None:
            self._event_bus.shutdown()
        self._engine.dispose()
