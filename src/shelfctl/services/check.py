"""CheckService — ledger integrity audit.

Read-only: a book whose counters disagree with its loans is reported,
never repaired. Three categories: copy counts, the
one-active-loan-per-pair rule, and loans whose book or member is gone.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from shelfctl.domain.lifecycle import copy_count_problems
from shelfctl.infrastructure.database.schema import books, loans, members
from shelfctl.infrastructure.store import ACTIVE, StoreBusy
from shelfctl.services._helpers import now_compact
from shelfctl.services.base import BaseService
from shelfctl.services.result import ErrorCode, ServiceResult
from shelfctl.services.telemetry import traced

if TYPE_CHECKING:
    from sqlalchemy import Connection

logger = logging.getLogger(__name__)

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

CAT_COPY_COUNTS = "copy_counts"
CAT_DUPLICATE_LOANS = "duplicate_loans"
CAT_ORPHAN_LOANS = "orphan_loans"


def _issue(category: str, severity: str, message: str, **detail: Any) -> dict[str, Any]:
    return {"category": category, "severity": severity, "message": message, **detail}


class CheckService(BaseService):
    """Audits the catalog against the loan ledger."""

    @traced
    def check(self) -> ServiceResult:
        """Report integrity issues without modifying anything."""
        op = "check"
        issues: list[dict[str, Any]] = []
        try:
            with self._store.reader() as txn:
                issues.extend(self._check_copy_counts(txn.conn))
                issues.extend(self._check_duplicate_loans(txn.conn))
                issues.extend(self._check_orphan_loans(txn.conn))
        except StoreBusy as exc:
            return self._busy(op, str(exc))

        errors = sum(1 for i in issues if i["severity"] == SEVERITY_ERROR)
        return ServiceResult(
            ok=True,
            op=op,
            data={"issues": issues, "count": len(issues), "errors": errors},
        )

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def _check_copy_counts(self, conn: Connection) -> list[dict[str, Any]]:
        active_counts = (
            select(loans.c.book_id, func.count().label("active"))
            .where(loans.c.status == ACTIVE)
            .group_by(loans.c.book_id)
            .subquery()
        )
        rows = conn.execute(
            select(
                books.c.id,
                books.c.title,
                books.c.total_copies,
                books.c.available_copies,
                func.coalesce(active_counts.c.active, 0).label("active"),
            )
            .select_from(books)
            .outerjoin(active_counts, active_counts.c.book_id == books.c.id)
            .order_by(books.c.id)
        ).fetchall()

        issues: list[dict[str, Any]] = []
        for row in rows:
            problems = copy_count_problems(row.total_copies, row.available_copies, row.active)
            if not problems:
                continue
            logger.critical("Copy counters for %s disagree with the ledger: %s", row.id, problems)
            issues.append(
                _issue(
                    CAT_COPY_COUNTS,
                    SEVERITY_ERROR,
                    f"{row.id} ({row.title}): {'; '.join(problems)}",
                    code=ErrorCode.INVARIANT_VIOLATION,
                    book_id=row.id,
                    total_copies=row.total_copies,
                    available_copies=row.available_copies,
                    active_loans=row.active,
                )
            )
        return issues

    def _check_duplicate_loans(self, conn: Connection) -> list[dict[str, Any]]:
        rows = conn.execute(
            select(loans.c.book_id, loans.c.member_id, func.count().label("n"))
            .where(loans.c.status == ACTIVE)
            .group_by(loans.c.book_id, loans.c.member_id)
            .having(func.count() > 1)
        ).fetchall()
        issues = []
        for row in rows:
            logger.critical("Member %s holds %d active loans of %s", row.member_id, row.n, row.book_id)
            issues.append(
                _issue(
                    CAT_DUPLICATE_LOANS,
                    SEVERITY_ERROR,
                    f"{row.member_id} holds {row.n} active loans of {row.book_id}",
                    code=ErrorCode.DUPLICATE_LOAN,
                    book_id=row.book_id,
                    member_id=row.member_id,
                )
            )
        return issues

    def _check_orphan_loans(self, conn: Connection) -> list[dict[str, Any]]:
        rows = conn.execute(
            select(
                loans.c.id,
                loans.c.book_id,
                loans.c.member_id,
                books.c.id.label("book_found"),
                members.c.id.label("member_found"),
            )
            .select_from(loans)
            .outerjoin(books, books.c.id == loans.c.book_id)
            .outerjoin(members, members.c.id == loans.c.member_id)
            .where((books.c.id.is_(None)) | (members.c.id.is_(None)))
        ).fetchall()
        issues = []
        for row in rows:
            missing = "book" if row.book_found is None else "member"
            missing_id = row.book_id if missing == "book" else row.member_id
            issues.append(
                _issue(
                    CAT_ORPHAN_LOANS,
                    SEVERITY_WARNING,
                    f"Loan {row.id} references missing {missing} {missing_id}",
                    code=ErrorCode.NOT_FOUND,
                    loan_id=row.id,
                    entity=missing,
                )
            )
        return issues

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    def backup_db(self) -> Path:
        """Write a consistent timestamped copy of the database to ``.shelfctl/backups``.

        Uses SQLite's online backup so pages still in the WAL are included.
        """
        backup_dir = self._store.db_path.parent / "backups"
        backup_dir.mkdir(parents=True, exist_ok=True)
        backup_path = backup_dir / f"shelfctl-{now_compact()}.db"

        raw = self._store.engine.raw_connection()
        try:
            dest = sqlite3.connect(backup_path)
            try:
                raw.driver_connection.backup(dest)
            finally:
                dest.close()
        finally:
            raw.close()

        self._prune_backups(backup_dir)
        logger.debug("Backed up database to %s", backup_path)
        return backup_path

    def _prune_backups(self, backup_dir: Path) -> None:
        keep = self._store.settings.database.backup_max_count
        backups = sorted(backup_dir.glob("shelfctl-*.db"))
        if len(backups) > keep:
            for old in backups[: len(backups) - keep]:
                old.unlink(missing_ok=True)
