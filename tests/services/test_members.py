"""Tests for MemberService."""

from __future__ import annotations

from shelfctl.infrastructure.store import LibraryStore
from shelfctl.services.circulation import CirculationService
from shelfctl.services.members import MemberService
from shelfctl.services.result import ErrorCode
from tests.conftest import add_book, issue, register_member


class TestRegister:
    def test_register(self, store: LibraryStore) -> None:
        result = MemberService(store).register("Ada Lovelace", email=" Ada@Example.org ", phone="555-0100")
        assert result.ok
        assert result.data["id"] == "MEM-0001"
        assert result.data["email"] == "ada@example.org"

    def test_duplicate_email(self, store: LibraryStore) -> None:
        first = register_member(store)
        result = MemberService(store).register("Someone Else", email="ADA.LOVELACE@example.org", phone="1")
        assert result.error.code == ErrorCode.DUPLICATE_EMAIL
        assert result.error.detail["member_id"] == first["id"]

    def test_invalid_email(self, store: LibraryStore) -> None:
        result = MemberService(store).register("Ada", email="nowhere", phone="1")
        assert result.error.code == ErrorCode.VALIDATION_FAILED


class TestQueries:
    def test_get_member_counts_loans(self, store: LibraryStore) -> None:
        member = register_member(store)
        issue(store, add_book(store)["id"], member["id"])
        assert MemberService(store).get_member(member["id"]).data["active_loans"] == 1

    def test_get_missing(self, store: LibraryStore) -> None:
        assert MemberService(store).get_member("MEM-0404").error.code == ErrorCode.NOT_FOUND

    def test_list_and_search(self, store: LibraryStore) -> None:
        register_member(store, "Ada Lovelace")
        register_member(store, "Grace Hopper")
        svc = MemberService(store)
        assert svc.list_members().data["total"] == 2
        assert [m["name"] for m in svc.list_members(search="hopper").data["items"]] == ["Grace Hopper"]


class TestUpdate:
    def test_update_phone(self, store: LibraryStore) -> None:
        member = register_member(store)
        result = MemberService(store).update_member(member["id"], changes={"phone": "555-0199"})
        assert result.ok
        assert result.data["phone"] == "555-0199"
        assert result.data["fields_changed"] == ["phone"]

    def test_email_clash(self, store: LibraryStore) -> None:
        register_member(store, "Ada Lovelace")
        grace = register_member(store, "Grace Hopper")
        result = MemberService(store).update_member(grace["id"], changes={"email": "ada.lovelace@example.org"})
        assert result.error.code == ErrorCode.DUPLICATE_EMAIL

    def test_keep_own_email(self, store: LibraryStore) -> None:
        member = register_member(store)
        result = MemberService(store).update_member(member["id"], changes={"email": member["email"]})
        assert result.ok

    def test_unknown_field(self, store: LibraryStore) -> None:
        member = register_member(store)
        result = MemberService(store).update_member(member["id"], changes={"address": "x"})
        assert result.error.code == ErrorCode.VALIDATION_FAILED


class TestRemove:
    def test_remove_idle_member(self, store: LibraryStore) -> None:
        member = register_member(store)
        result = MemberService(store).remove_member(member["id"])
        assert result.ok
        assert MemberService(store).get_member(member["id"]).error.code == ErrorCode.NOT_FOUND

    def test_remove_with_active_loan_refused(self, store: LibraryStore) -> None:
        member = register_member(store)
        issue(store, add_book(store)["id"], member["id"])
        result = MemberService(store).remove_member(member["id"])
        assert result.error.code == ErrorCode.ACTIVE_LOANS

    def test_remove_purges_history(self, store: LibraryStore) -> None:
        member = register_member(store)
        book = add_book(store)
        loan = issue(store, book["id"], member["id"])
        CirculationService(store).return_loan(loan["id"])

        result = MemberService(store).remove_member(member["id"])
        assert result.data["purged_loans"] == 1
        assert CirculationService(store).list_loans(book_id=book["id"]).data["total"] == 0
