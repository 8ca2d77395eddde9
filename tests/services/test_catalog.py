"""Tests for CatalogService — book records and the copy-count guard."""

from __future__ import annotations

import sqlite3

from shelfctl.config.settings import ShelfSettings
from shelfctl.infrastructure.store import LibraryStore
from shelfctl.services.catalog import CatalogService
from shelfctl.services.result import ErrorCode
from tests.conftest import add_book, issue, register_member


class TestAddBook:
    def test_add_sets_available_to_total(self, store: LibraryStore) -> None:
        result = CatalogService(store).add_book(
            "Dune", author="Frank Herbert", isbn="978-0-441-17271-9", category="Fiction", total_copies=4
        )
        assert result.ok
        assert result.op == "add_book"
        assert result.data["id"] == "BK-0001"
        assert result.data["isbn"] == "9780441172719"
        assert result.data["total_copies"] == 4
        assert result.data["available_copies"] == 4

    def test_ids_are_sequential(self, store: LibraryStore) -> None:
        assert add_book(store, "One")["id"] == "BK-0001"
        assert add_book(store, "Two")["id"] == "BK-0002"

    def test_duplicate_isbn(self, store: LibraryStore) -> None:
        first = add_book(store, isbn="0441172717")
        result = CatalogService(store).add_book(
            "Dune (reprint)", author="Frank Herbert", isbn="0-441-17271-7", category="Fiction"
        )
        assert result.error.code == ErrorCode.DUPLICATE_ISBN
        assert result.error.detail["book_id"] == first["id"]

    def test_zero_copies_rejected(self, store: LibraryStore) -> None:
        result = CatalogService(store).add_book(
            "Dune", author="Frank Herbert", isbn="0441172717", category="Fiction", total_copies=0
        )
        assert result.error.code == ErrorCode.VALIDATION_FAILED
        assert "total_copies" in result.error.message

    def test_blank_fields_rejected(self, store: LibraryStore) -> None:
        result = CatalogService(store).add_book("  ", author="", isbn="not-an-isbn", category="Fiction")
        assert result.error.code == ErrorCode.VALIDATION_FAILED
        for name in ("title", "author", "isbn"):
            assert name in result.error.message


class TestGetAndList:
    def test_get_book_counts_active_loans(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        issue(store, book["id"], register_member(store)["id"])
        data = CatalogService(store).get_book(book["id"]).data
        assert data["active_loans"] == 1
        assert data["available_copies"] == 1

    def test_get_missing_book(self, store: LibraryStore) -> None:
        result = CatalogService(store).get_book("BK-0404")
        assert result.error.code == ErrorCode.NOT_FOUND

    def test_malformed_id_hint(self, store: LibraryStore) -> None:
        result = CatalogService(store).get_book("book-1")
        assert "expected BK-NNNN" in result.error.message

    def test_list_newest_first(self, store: LibraryStore) -> None:
        add_book(store, "One")
        add_book(store, "Two")
        items = CatalogService(store).list_books().data["items"]
        assert [i["title"] for i in items] == ["Two", "One"]

    def test_search_is_case_insensitive(self, store: LibraryStore) -> None:
        add_book(store, "Dune", author="Frank Herbert")
        add_book(store, "Emma", author="Jane Austen", category="Classics")
        svc = CatalogService(store)
        assert [i["title"] for i in svc.list_books(search="austen").data["items"]] == ["Emma"]
        assert [i["title"] for i in svc.list_books(search="DUNE").data["items"]] == ["Dune"]
        assert svc.list_books(category="classics").data["total"] == 1

    def test_pagination(self, store: LibraryStore) -> None:
        for i in range(5):
            add_book(store, f"Volume {i}")
        data = CatalogService(store).list_books(limit=2, offset=2).data
        assert data["count"] == 2
        assert data["total"] == 5
        assert data["offset"] == 2

    def test_get_book_while_another_store_writes(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        settings = ShelfSettings.from_cli(library_root=store.root)
        settings = settings.model_copy(
            update={"database": settings.database.model_copy(update={"busy_timeout": 0.05})}
        )
        lookup = LibraryStore(settings)
        try:
            with store.transaction() as txn:
                txn.take_copy(book["id"], "now")
                result = CatalogService(lookup).get_book(book["id"])
            assert result.ok
            assert result.data["available_copies"] == 2
            assert CatalogService(lookup).get_book(book["id"]).data["available_copies"] == 1
        finally:
            lookup.close()


class TestSetTotalCopies:
    def test_grow_adds_available(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        issue(store, book["id"], register_member(store)["id"])
        result = CatalogService(store).set_total_copies(book["id"], 5)
        assert result.ok
        assert result.data["available_copies"] == 4
        assert result.data["previous_total"] == 2

    def test_shrink_to_active_loans(self, store: LibraryStore) -> None:
        book = add_book(store, copies=3)
        issue(store, book["id"], register_member(store)["id"])
        result = CatalogService(store).set_total_copies(book["id"], 1)
        assert result.ok
        assert result.data["available_copies"] == 0

    def test_shrink_below_active_loans_rejected(self, store: LibraryStore) -> None:
        book = add_book(store, copies=3)
        issue(store, book["id"], register_member(store, "Reader One")["id"])
        issue(store, book["id"], register_member(store, "Reader Two")["id"])

        result = CatalogService(store).set_total_copies(book["id"], 1)
        assert result.error.code == ErrorCode.INVARIANT_VIOLATION
        assert result.error.detail["active_loans"] == 2
        data = CatalogService(store).get_book(book["id"]).data
        assert (data["total_copies"], data["available_copies"]) == (3, 1)

    def test_zero_rejected(self, store: LibraryStore) -> None:
        book = add_book(store)
        result = CatalogService(store).set_total_copies(book["id"], 0)
        assert result.error.code == ErrorCode.VALIDATION_FAILED

    def test_inconsistent_book_refused(self, store: LibraryStore) -> None:
        book = add_book(store, copies=3)
        raw = sqlite3.connect(store.db_path)
        with raw:
            raw.execute("UPDATE books SET available_copies = 1 WHERE id = ?", (book["id"],))
        raw.close()

        result = CatalogService(store).set_total_copies(book["id"], 4)
        assert result.error.code == ErrorCode.INVARIANT_VIOLATION
        assert result.error.detail["problems"]


class TestUpdateBook:
    def test_edit_fields(self, store: LibraryStore) -> None:
        book = add_book(store)
        result = CatalogService(store).update_book(book["id"], changes={"title": "Dune Messiah"})
        assert result.ok
        assert result.data["title"] == "Dune Messiah"
        assert result.data["fields_changed"] == ["title"]

    def test_available_copies_not_editable(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        result = CatalogService(store).update_book(book["id"], changes={"available_copies": 1})
        assert result.error.code == ErrorCode.VALIDATION_FAILED
        assert CatalogService(store).get_book(book["id"]).data["available_copies"] == 2

    def test_unknown_field(self, store: LibraryStore) -> None:
        book = add_book(store)
        result = CatalogService(store).update_book(book["id"], changes={"shelf": "A3"})
        assert result.error.code == ErrorCode.VALIDATION_FAILED

    def test_empty_changes(self, store: LibraryStore) -> None:
        book = add_book(store)
        assert CatalogService(store).update_book(book["id"], changes={}).error.code == (
            ErrorCode.VALIDATION_FAILED
        )

    def test_isbn_clash(self, store: LibraryStore) -> None:
        first = add_book(store, "One")
        second = add_book(store, "Two")
        result = CatalogService(store).update_book(second["id"], changes={"isbn": first["isbn"]})
        assert result.error.code == ErrorCode.DUPLICATE_ISBN

    def test_total_change_goes_through_guard(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        issue(store, book["id"], register_member(store, "Reader One")["id"])
        issue(store, book["id"], register_member(store, "Reader Two")["id"])

        result = CatalogService(store).update_book(book["id"], changes={"title": "Renamed", "total_copies": 1})
        assert result.error.code == ErrorCode.INVARIANT_VIOLATION
        # Nothing was written, not even the title.
        assert CatalogService(store).get_book(book["id"]).data["title"] == "Dune"

    def test_total_change_recomputes_available(self, store: LibraryStore) -> None:
        book = add_book(store, copies=2)
        issue(store, book["id"], register_member(store)["id"])
        result = CatalogService(store).update_book(book["id"], changes={"total_copies": 4})
        assert result.ok
        assert result.data["available_copies"] == 3
        assert result.data["fields_changed"] == ["total_copies"]

    def test_missing_book(self, store: LibraryStore) -> None:
        result = CatalogService(store).update_book("BK-0404", changes={"title": "X"})
        assert result.error.code == ErrorCode.NOT_FOUND


class TestWithdraw:
    def test_withdraw_idle_book(self, store: LibraryStore) -> None:
        book = add_book(store)
        result = CatalogService(store).withdraw_book(book["id"])
        assert result.ok
        assert result.data["purged_loans"] == 0
        assert CatalogService(store).get_book(book["id"]).error.code == ErrorCode.NOT_FOUND

    def test_withdraw_with_active_loan_refused(self, store: LibraryStore) -> None:
        book = add_book(store)
        issue(store, book["id"], register_member(store)["id"])
        result = CatalogService(store).withdraw_book(book["id"])
        assert result.error.code == ErrorCode.ACTIVE_LOANS
        assert result.error.detail["active_loans"] == 1

    def test_withdraw_purges_returned_loans(self, store: LibraryStore) -> None:
        from shelfctl.services.circulation import CirculationService

        book = add_book(store)
        loan = issue(store, book["id"], register_member(store)["id"])
        CirculationService(store).return_loan(loan["id"])
        result = CatalogService(store).withdraw_book(book["id"])
        assert result.data["purged_loans"] == 1


class TestStats:
    def test_empty_catalog(self, store: LibraryStore) -> None:
        data = CatalogService(store).stats().data
        assert data == {"titles": 0, "total_copies": 0, "available_copies": 0, "on_loan": 0}

    def test_counts(self, store: LibraryStore) -> None:
        book = add_book(store, copies=3)
        add_book(store, "Emma", copies=2)
        issue(store, book["id"], register_member(store)["id"])
        data = CatalogService(store).stats().data
        assert data == {"titles": 2, "total_copies": 5, "available_copies": 4, "on_loan": 1}
