"""Tests for LibraryStore — transactions, guarded counters, lock access."""

from __future__ import annotations

import sqlite3
import threading

import pytest

from shelfctl.config.settings import ShelfSettings
from shelfctl.infrastructure.locks import LockTimeout
from shelfctl.infrastructure.store import LibraryStore, StoreBusy
from tests.conftest import add_book, issue, register_member


class TestGuardedCounters:
    def test_take_copy_decrements(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        with store.transaction() as txn:
            assert txn.take_copy(book["id"], "now")
            assert txn.get_book(book["id"]).available_copies == 1

    def test_take_copy_refuses_at_zero(self, store: LibraryStore) -> None:
        book = add_book(store, copies=1)
        with store.transaction() as txn:
            assert txn.take_copy(book["id"], "now")
            assert not txn.take_copy(book["id"], "now")
            assert txn.get_book(book["id"]).available_copies == 0

    def test_restore_copy_refuses_at_total(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        with store.transaction() as txn:
            assert not txn.restore_copy(book["id"], "now")
            assert txn.get_book(book["id"]).available_copies == 2

    def test_missing_book(self, store: LibraryStore) -> None:
        with store.transaction() as txn:
            assert not txn.take_copy("BK-9999", "now")
            assert not txn.restore_copy("BK-9999", "now")

    def test_field_update_rejects_counters(self, store: LibraryStore) -> None:
        book = add_book(store)
        with pytest.raises(ValueError, match="copy counters"), store.transaction() as txn:
            txn.update_book_fields(book["id"], {"available_copies": 5})


class TestTransaction:
    def test_rollback_on_exception(self, store: LibraryStore) -> None:
        book = add_book(store, copies=1)
        with pytest.raises(RuntimeError), store.transaction() as txn:
            txn.take_copy(book["id"], "now")
            raise RuntimeError("abort")
        with store.reader() as txn:
            assert txn.get_book(book["id"]).available_copies == 1

    def test_loan_and_counter_commit_together(self, store: LibraryStore) -> None:
        book = add_book(store, copies=1)
        member = register_member(store)
        with store.transaction() as txn:
            txn.take_copy(book["id"], "now")
            loan_id = txn.insert_loan(book["id"], member["id"], issued_by="desk", issued_at="now")
        with store.reader() as txn:
            assert txn.get_loan(loan_id).status == "active"
            assert txn.count_active_loans(book_id=book["id"]) == 1
            assert txn.get_book(book["id"]).available_copies == 0

    def test_close_loan_only_once(self, store: LibraryStore) -> None:
        book = add_book(store)
        member = register_member(store)
        loan = issue(store, book["id"], member["id"])
        with store.transaction() as txn:
            assert txn.close_loan(loan["id"], "later")
            assert not txn.close_loan(loan["id"], "later")

    def test_delete_book_purges_returned_loans(self, store: LibraryStore) -> None:
        book = add_book(store)
        member = register_member(store)
        loan = issue(store, book["id"], member["id"])
        with store.transaction() as txn:
            txn.close_loan(loan["id"], "later")
            txn.restore_copy(book["id"], "later")
        with store.transaction() as txn:
            assert txn.delete_book(book["id"]) == 1
            assert txn.get_loan(loan["id"]) is None

    def test_sqlite_write_lock_maps_to_busy(self, library_root) -> None:
        settings = ShelfSettings.from_cli(library_root=library_root)
        settings = settings.model_copy(
            update={"database": settings.database.model_copy(update={"busy_timeout": 0.05})}
        )
        store = LibraryStore(settings)
        other = sqlite3.connect(store.db_path, isolation_level=None)
        try:
            other.execute("BEGIN IMMEDIATE")
            with pytest.raises(StoreBusy), store.transaction():
                pass
        finally:
            other.execute("ROLLBACK")
            other.close()
            store.close()

    def test_reader_proceeds_while_write_lock_held(self, library_root) -> None:
        settings = ShelfSettings.from_cli(library_root=library_root)
        settings = settings.model_copy(
            update={"database": settings.database.model_copy(update={"busy_timeout": 0.05})}
        )
        store = LibraryStore(settings)
        book = add_book(store, copies=2)
        other = sqlite3.connect(store.db_path, isolation_level=None)
        try:
            other.execute("BEGIN IMMEDIATE")
            other.execute("UPDATE books SET available_copies = 1 WHERE id = ?", (book["id"],))
            with store.reader() as txn:
                assert txn.get_book(book["id"]).available_copies == 2
        finally:
            other.execute("ROLLBACK")
            other.close()
            store.close()


class TestLocked:
    def test_locked_times_out_as_lock_timeout(self, library_root) -> None:
        settings = ShelfSettings.from_cli(library_root=library_root)
        settings = settings.model_copy(
            update={"circulation": settings.circulation.model_copy(update={"lock_timeout": 0.05})}
        )
        store = LibraryStore(settings)
        held = threading.Event()
        done = threading.Event()

        def holder() -> None:
            with store.locked("book", "BK-0001"):
                held.set()
                done.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        try:
            assert held.wait(5)
            with pytest.raises(LockTimeout), store.locked("book", "BK-0001"):
                pass
        finally:
            done.set()
            t.join()
            store.close()

    def test_paths(self, store: LibraryStore, library_root) -> None:
        assert store.root == library_root
        assert store.db_path == library_root / ".shelfctl" / "shelfctl.db"
        assert store.event_bus is None
