"""CatalogService — book records and the copy-count guard.

Titles are cataloged with every copy on the shelf. After that,
``available_copies`` belongs to the circulation engine; the only catalog
operation that may touch it is :meth:`CatalogService.set_total_copies`,
which recomputes it from the active-loan count under the book lock.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import desc, func, or_, select
from sqlalchemy.exc import IntegrityError

from shelfctl.domain.lifecycle import InvariantViolation, copy_count_problems, resize_available
from shelfctl.domain.records import BOOK_FIELDS, validate_book
from shelfctl.infrastructure.database.schema import books
from shelfctl.infrastructure.locks import LockTimeout
from shelfctl.infrastructure.store import StoreBusy
from shelfctl.services._helpers import now_iso, page_bounds, row_dict
from shelfctl.services.base import BaseService
from shelfctl.services.result import ErrorCode, ServiceResult
from shelfctl.services.telemetry import traced

logger = logging.getLogger(__name__)


class CatalogService(BaseService):
    """Catalog store operations."""

    @traced
    def add_book(
        self,
        title: str,
        *,
        author: str,
        isbn: str,
        category: str,
        total_copies: int = 1,
    ) -> ServiceResult:
        """Catalog a new title with ``available_copies = total_copies``."""
        op = "add_book"
        vr = validate_book(
            {
                "title": title,
                "author": author,
                "isbn": isbn,
                "category": category,
                "total_copies": total_copies,
            }
        )
        if not vr.valid:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "; ".join(vr.errors))
        fields = vr.cleaned

        now = now_iso()
        try:
            with self._store.transaction() as txn:
                existing = txn.find_book_by_isbn(fields["isbn"])
                if existing is not None:
                    return self._fail(
                        op,
                        ErrorCode.DUPLICATE_ISBN,
                        f"ISBN {fields['isbn']} is already cataloged as {existing.id}",
                        book_id=existing.id,
                    )
                book_id = txn.next_id("BK-")
                txn.insert_book(
                    {
                        "id": book_id,
                        **fields,
                        "available_copies": fields["total_copies"],
                        "created": now,
                        "modified": now,
                    }
                )
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": book_id,
                **fields,
                "available_copies": fields["total_copies"],
                "created": now,
            },
        )

    @traced
    def get_book(self, book_id: str) -> ServiceResult:
        op = "get_book"
        try:
            with self._store.reader() as txn:
                book = txn.get_book(book_id)
                active = txn.count_active_loans(book_id=book_id) if book is not None else 0
        except StoreBusy as exc:
            return self._busy(op, str(exc))
        if book is None:
            return self._not_found(op, "book", book_id)
        return ServiceResult(ok=True, op=op, data={**row_dict(book), "active_loans": active})

    @traced
    def list_books(
        self,
        *,
        search: str | None = None,
        category: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ServiceResult:
        """List titles, newest first, with optional case-insensitive search."""
        op = "list_books"
        limit, offset = page_bounds(limit, offset)

        filters = []
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(
                or_(
                    func.lower(books.c.title).like(pattern),
                    func.lower(books.c.author).like(pattern),
                    func.lower(books.c.category).like(pattern),
                )
            )
        if category:
            filters.append(func.lower(books.c.category).like(f"%{category.lower()}%"))

        stmt = (
            select(books)
            .where(*filters)
            .order_by(desc(books.c.created), desc(books.c.id))
            .limit(limit)
            .offset(offset)
        )
        try:
            with self._store.reader() as txn:
                rows = txn.conn.execute(stmt).fetchall()
                total = int(
                    txn.conn.execute(select(func.count()).select_from(books).where(*filters)).scalar_one()
                )
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "items": [row_dict(r) for r in rows],
                "count": len(rows),
                "total": total,
                "limit": limit,
                "offset": offset,
            },
        )

    @traced
    def update_book(self, book_id: str, *, changes: dict[str, Any]) -> ServiceResult:
        """Edit catalog fields in one locked transaction.

        A ``total_copies`` change goes through the same guard as
        :meth:`set_total_copies`. ``available_copies`` cannot be edited.
        """
        op = "update_book"
        if "available_copies" in changes:
            return self._fail(
                op,
                ErrorCode.VALIDATION_FAILED,
                "available_copies is maintained by circulation and cannot be edited",
            )
        unknown = sorted(set(changes) - set(BOOK_FIELDS))
        if unknown:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, f"Unknown book fields: {unknown}")
        if not changes:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "No changes given")

        vr = validate_book(changes, partial=True)
        if not vr.valid:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "; ".join(vr.errors))
        fields = dict(vr.cleaned)
        total_copies = fields.pop("total_copies", None)

        now = now_iso()
        try:
            with self._store.locked("book", book_id), self._store.transaction() as txn:
                book = txn.get_book(book_id)
                if book is None:
                    return self._not_found(op, "book", book_id)
                if "isbn" in fields:
                    clash = txn.find_book_by_isbn(fields["isbn"])
                    if clash is not None and clash.id != book_id:
                        return self._fail(
                            op,
                            ErrorCode.DUPLICATE_ISBN,
                            f"ISBN {fields['isbn']} is already cataloged as {clash.id}",
                            book_id=clash.id,
                        )

                # Every check runs before the first write: an early return still commits.
                active = txn.count_active_loans(book_id=book_id)
                available = book.available_copies
                if total_copies is not None:
                    available = self._resized_available(book, active, total_copies)

                if fields:
                    txn.update_book_fields(book_id, {**fields, "modified": now})
                if total_copies is not None:
                    txn.set_copy_counts(book_id, total_copies, available, now)
                updated = txn.get_book(book_id)
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))
        except InvariantViolation as exc:
            return self._fail(op, ErrorCode.INVARIANT_VIOLATION, exc.message, retryable=False, **exc.detail)

        changed = sorted([*fields, *(["total_copies"] if total_copies is not None else [])])
        return ServiceResult(
            ok=True,
            op=op,
            data={**row_dict(updated), "active_loans": active, "fields_changed": changed},
        )

    @traced
    def set_total_copies(self, book_id: str, total_copies: int) -> ServiceResult:
        """Resize a title's copy count without breaking the loan ledger.

        ``available_copies`` becomes ``total_copies - active loans``. A total
        below the active-loan count is rejected with ``INVARIANT_VIOLATION``,
        as is any resize of a book whose counters already disagree with its
        ledger.
        """
        op = "set_total_copies"
        vr = validate_book({"total_copies": total_copies}, partial=True)
        if not vr.valid:
            return self._fail(op, ErrorCode.VALIDATION_FAILED, "; ".join(vr.errors))

        try:
            with self._store.locked("book", book_id), self._store.transaction() as txn:
                book = txn.get_book(book_id)
                if book is None:
                    return self._not_found(op, "book", book_id)
                active = txn.count_active_loans(book_id=book_id)
                available = self._resized_available(book, active, total_copies)
                txn.set_copy_counts(book_id, total_copies, available, now_iso())
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))
        except InvariantViolation as exc:
            return self._fail(op, ErrorCode.INVARIANT_VIOLATION, exc.message, retryable=False, **exc.detail)

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": book_id,
                "total_copies": total_copies,
                "available_copies": available,
                "active_loans": active,
                "previous_total": book.total_copies,
            },
        )

    @staticmethod
    def _resized_available(book: Any, active: int, total_copies: int) -> int:
        """Guarded ``available_copies`` for a new total.

        Raises:
            InvariantViolation: If the book is already inconsistent, or the
                new total cannot cover its active loans.
        """
        problems = copy_count_problems(book.total_copies, book.available_copies, active)
        if problems:
            logger.critical("Refusing resize of inconsistent book %s: %s", book.id, problems)
            msg = f"Book {book.id} counters disagree with its loans: {'; '.join(problems)}"
            raise InvariantViolation(msg, book_id=book.id, problems=problems)
        try:
            return resize_available(total_copies, active)
        except InvariantViolation as exc:
            logger.warning("Rejected resize of %s: %s", book.id, exc.message)
            exc.detail["book_id"] = book.id
            raise

    @traced
    def withdraw_book(self, book_id: str) -> ServiceResult:
        """Remove a title. Refused while any copy is on loan."""
        op = "withdraw_book"
        try:
            with self._store.locked("book", book_id), self._store.transaction() as txn:
                book = txn.get_book(book_id)
                if book is None:
                    return self._not_found(op, "book", book_id)
                active = txn.count_active_loans(book_id=book_id)
                if active:
                    return self._fail(
                        op,
                        ErrorCode.ACTIVE_LOANS,
                        f"{book.title!r} has {active} active loan(s); cannot withdraw",
                        book_id=book_id,
                        active_loans=active,
                    )
                purged = txn.delete_book(book_id)
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))
        except IntegrityError as exc:
            return self._fail(op, ErrorCode.ACTIVE_LOANS, f"Book {book_id} is still referenced: {exc.orig}")

        return ServiceResult(
            ok=True,
            op=op,
            data={"id": book_id, "title": book.title, "purged_loans": purged},
        )

    @traced
    def stats(self) -> ServiceResult:
        """Title count and summed copy counters."""
        op = "book_stats"
        stmt = select(
            func.count(books.c.id),
            func.coalesce(func.sum(books.c.total_copies), 0),
            func.coalesce(func.sum(books.c.available_copies), 0),
        )
        try:
            with self._store.reader() as txn:
                titles, total, available = txn.conn.execute(stmt).one()
        except StoreBusy as exc:
            return self._busy(op, str(exc))
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "titles": int(titles),
                "total_copies": int(total),
                "available_copies": int(available),
                "on_loan": int(total) - int(available),
            },
        )
