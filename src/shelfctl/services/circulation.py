"""CirculationService — issue/return transactions and ledger queries.

Pipeline per transaction: LOCK → VALIDATE → APPLY → COMMIT → NOTIFY

- LOCK: the book (issue) or the loan then its book (return), with a
  bounded wait. Contention past the timeout is ``BUSY``.
- VALIDATE: preconditions are read inside the same DB transaction that
  applies the change, so check-then-act cannot interleave.
- APPLY: the copy counter moves by a guarded compare-and-update and the
  loan row is written on the same connection. A guard that refuses a
  change the validation allowed means the counters and ledger diverged:
  the transaction rolls back and ``INVARIANT_VIOLATION`` is reported.
- NOTIFY: after commit and after the lock is released; failures become
  warnings on an otherwise successful result.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError

from shelfctl.domain.lifecycle import InvariantViolation, LoanStatus, is_valid_transition
from shelfctl.infrastructure.database.schema import books, loans, members
from shelfctl.infrastructure.locks import LockTimeout
from shelfctl.infrastructure.store import StoreBusy
from shelfctl.services._helpers import now_iso, page_bounds, row_dict
from shelfctl.services.base import BaseService
from shelfctl.services.result import ErrorCode, ServiceResult
from shelfctl.services.telemetry import traced

logger = logging.getLogger(__name__)


def _loan_data(loan: Any, *, book_title: str | None = None, member_name: str | None = None) -> dict[str, Any]:
    data = row_dict(loan)
    if book_title is not None:
        data["book_title"] = book_title
    if member_name is not None:
        data["member_name"] = member_name
    return data


class CirculationService(BaseService):
    """The circulation engine: owns every change to a book's available copies."""

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    @traced
    def issue(self, book_id: str, member_id: str, *, actor_id: str | None = None) -> ServiceResult:
        """Issue one copy of *book_id* to *member_id*.

        Precondition order: book exists, member exists, a copy is
        available, no active loan for the pair.
        """
        op = "issue"
        warnings: list[str] = []
        issued_by = actor_id or self._store.settings.circulation.default_actor

        try:
            with self._store.locked("book", book_id), self._store.transaction() as txn:
                # ── VALIDATE ─────────────────────────────────────────
                book = txn.get_book(book_id)
                if book is None:
                    return self._not_found(op, "book", book_id)

                member = txn.get_member(member_id)
                if member is None:
                    return self._not_found(op, "member", member_id)

                if book.available_copies <= 0:
                    return self._fail(
                        op,
                        ErrorCode.EXHAUSTED,
                        f"No copies available for {book.title!r}",
                        book_id=book_id,
                        total_copies=book.total_copies,
                    )

                existing = txn.find_active_loan(book_id, member_id)
                if existing is not None:
                    return self._fail(
                        op,
                        ErrorCode.DUPLICATE_LOAN,
                        f"{book.title!r} is already issued to member {member_id}",
                        loan_id=existing.id,
                    )

                # ── APPLY ────────────────────────────────────────────
                issued_at = now_iso()
                if not txn.take_copy(book_id, issued_at):
                    raise InvariantViolation(
                        f"Copy counter for {book_id} refused a decrement it had just allowed",
                        book_id=book_id,
                    )
                loan_id = txn.insert_loan(
                    book_id,
                    member_id,
                    issued_by=issued_by,
                    issued_at=issued_at,
                )
                available_after = book.available_copies - 1
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))
        except InvariantViolation as exc:
            return self._invariant_failure(op, exc)
        except IntegrityError as exc:
            return self._invariant_failure(
                op,
                InvariantViolation(
                    f"Database constraint rejected issue of {book_id} to {member_id}",
                    book_id=book_id,
                    member_id=member_id,
                    constraint=str(exc.orig),
                ),
            )

        logger.debug("Issued %s to %s as %s by %s", book_id, member_id, loan_id, issued_by)

        # ── NOTIFY ───────────────────────────────────────────
        self._dispatch_event(
            "notify_issued",
            {
                "member_contact": member.email,
                "member_name": member.name,
                "book_title": book.title,
                "issued_at": issued_at,
            },
            warnings,
        )

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "id": loan_id,
                "book_id": book_id,
                "member_id": member_id,
                "status": str(LoanStatus.ACTIVE),
                "issued_at": issued_at,
                "returned_at": None,
                "issued_by": issued_by,
                "book_title": book.title,
                "member_name": member.name,
                "available_copies": available_after,
            },
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Return
    # ------------------------------------------------------------------

    @traced
    def return_loan(self, loan_id: str) -> ServiceResult:
        """Return the copy held under *loan_id*.

        A loan that is already returned is rejected with
        ``ALREADY_RETURNED``; the copy counter is only ever incremented once.
        """
        op = "return"
        warnings: list[str] = []

        try:
            with self._store.locked("loan", loan_id):
                # book_id is immutable, so it can be read before the book lock.
                with self._store.reader() as peek:
                    loan = peek.get_loan(loan_id)
                if loan is None:
                    return self._not_found(op, "loan", loan_id)
                book_id = loan.book_id

                with self._store.locked("book", book_id), self._store.transaction() as txn:
                    # ── VALIDATE ─────────────────────────────────────
                    loan = txn.get_loan(loan_id)
                    if loan is None:
                        return self._not_found(op, "loan", loan_id)
                    if not is_valid_transition(loan.status, LoanStatus.RETURNED):
                        return self._fail(
                            op,
                            ErrorCode.ALREADY_RETURNED,
                            f"Loan {loan_id} was already returned at {loan.returned_at}",
                            loan_id=loan_id,
                            returned_at=loan.returned_at,
                        )

                    # ── APPLY ────────────────────────────────────────
                    returned_at = now_iso()
                    if not txn.close_loan(loan_id, returned_at):
                        raise InvariantViolation(
                            f"Loan {loan_id} could not be closed while active",
                            loan_id=loan_id,
                        )
                    if not txn.restore_copy(book_id, returned_at):
                        book = txn.get_book(book_id)
                        raise InvariantViolation(
                            f"Returning {loan_id} would push {book_id} past its total copies",
                            loan_id=loan_id,
                            book_id=book_id,
                            total_copies=book.total_copies if book else None,
                            available_copies=book.available_copies if book else None,
                        )

                    book = txn.get_book(book_id)
                    member = txn.get_member(loan.member_id)
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))
        except InvariantViolation as exc:
            return self._invariant_failure(op, exc)

        assert book is not None
        logger.debug("Returned %s (%s)", loan_id, book_id)

        # ── NOTIFY ───────────────────────────────────────────
        if member is not None:
            self._dispatch_event(
                "notify_returned",
                {
                    "member_contact": member.email,
                    "member_name": member.name,
                    "book_title": book.title,
                    "returned_at": returned_at,
                },
                warnings,
            )
        else:
            warnings.append(f"Member {loan.member_id} not found; no return notification sent")

        data = _loan_data(
            loan,
            book_title=book.title,
            member_name=member.name if member is not None else None,
        )
        data.update(
            status=str(LoanStatus.RETURNED),
            returned_at=returned_at,
            available_copies=book.available_copies,
        )
        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)

    # ------------------------------------------------------------------
    # Ledger queries
    # ------------------------------------------------------------------

    @traced
    def get_loan(self, loan_id: str) -> ServiceResult:
        op = "get_loan"
        stmt = (
            select(loans, books.c.title.label("book_title"), members.c.name.label("member_name"))
            .select_from(loans)
            .outerjoin(books, books.c.id == loans.c.book_id)
            .outerjoin(members, members.c.id == loans.c.member_id)
            .where(loans.c.id == loan_id)
        )
        try:
            with self._store.reader() as txn:
                row = txn.conn.execute(stmt).first()
        except StoreBusy as exc:
            return self._busy(op, str(exc))
        if row is None:
            return self._not_found(op, "loan", loan_id)
        return ServiceResult(ok=True, op=op, data=row_dict(row))

    @traced
    def list_loans(
        self,
        *,
        status: str | None = None,
        member_id: str | None = None,
        book_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> ServiceResult:
        """List ledger entries, newest first."""
        op = "list_loans"
        if status is not None and status not in {s.value for s in LoanStatus}:
            return self._fail(
                op,
                ErrorCode.VALIDATION_FAILED,
                f"Unknown loan status {status!r}; expected one of {[s.value for s in LoanStatus]}",
            )
        limit, offset = page_bounds(limit, offset)

        filters = []
        if status is not None:
            filters.append(loans.c.status == status)
        if member_id is not None:
            filters.append(loans.c.member_id == member_id)
        if book_id is not None:
            filters.append(loans.c.book_id == book_id)

        stmt = (
            select(loans, books.c.title.label("book_title"), members.c.name.label("member_name"))
            .select_from(loans)
            .outerjoin(books, books.c.id == loans.c.book_id)
            .outerjoin(members, members.c.id == loans.c.member_id)
            .where(*filters)
            .order_by(desc(loans.c.issued_at), desc(loans.c.id))
            .limit(limit)
            .offset(offset)
        )
        count_stmt = select(func.count()).select_from(loans).where(*filters)

        try:
            with self._store.reader() as txn:
                rows = txn.conn.execute(stmt).fetchall()
                total = int(txn.conn.execute(count_stmt).scalar_one())
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
    def stats(self) -> ServiceResult:
        """Active/returned counts and the five most recent active loans."""
        op = "loan_stats"
        try:
            with self._store.reader() as txn:
                counts = dict(
                    txn.conn.execute(
                        select(loans.c.status, func.count()).group_by(loans.c.status)
                    ).all()
                )
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        recent = self.list_loans(status=str(LoanStatus.ACTIVE), limit=5)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "active": int(counts.get(LoanStatus.ACTIVE.value, 0)),
                "returned": int(counts.get(LoanStatus.RETURNED.value, 0)),
                "recent": recent.data.get("items", []) if recent.ok else [],
            },
        )

    @traced
    def purge_loan(self, loan_id: str) -> ServiceResult:
        """Delete a returned loan from the ledger (administrative purge)."""
        op = "purge_loan"
        try:
            with self._store.locked("loan", loan_id), self._store.transaction() as txn:
                loan = txn.get_loan(loan_id)
                if loan is None:
                    return self._not_found(op, "loan", loan_id)
                if loan.status == LoanStatus.ACTIVE:
                    return self._fail(
                        op,
                        ErrorCode.LOAN_ACTIVE,
                        f"Loan {loan_id} is still active; return it before purging",
                        loan_id=loan_id,
                    )
                txn.delete_loan(loan_id)
        except (LockTimeout, StoreBusy) as exc:
            return self._busy(op, str(exc))

        return ServiceResult(ok=True, op=op, data={"id": loan_id, "book_id": loan.book_id})

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _invariant_failure(self, op: str, exc: InvariantViolation) -> ServiceResult:
        """Report a counter/ledger divergence loudly. The transaction has rolled back."""
        logger.critical("Invariant violation during %s: %s %s", op, exc.message, exc.detail)
        return self._fail(
            op,
            ErrorCode.INVARIANT_VIOLATION,
            exc.message,
            retryable=False,
            **exc.detail,
        )
