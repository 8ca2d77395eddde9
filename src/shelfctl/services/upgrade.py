"""UpgradeService — database migration with Alembic.

Pipeline: BACKUP → MIGRATE → VALIDATE → REPORT
"""

from __future__ import annotations

import logging
from typing import Any

from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect

from shelfctl.infrastructure.database.migrations import build_config
from shelfctl.services.base import BaseService
from shelfctl.services.check import SEVERITY_ERROR, CheckService
from shelfctl.services.result import ErrorCode, ServiceResult

logger = logging.getLogger(__name__)


class UpgradeService(BaseService):
    """Handles database schema migrations via Alembic."""

    def _db_url(self) -> str:
        return f"sqlite:///{self._store.db_path}"

    def _tables_exist(self) -> bool:
        return "books" in inspect(self._store.engine).get_table_names()

    def check_pending(self) -> ServiceResult:
        """List pending migrations without applying."""
        op = "upgrade"
        try:
            cfg = build_config(self._db_url())
            script = ScriptDirectory.from_config(cfg)
            head = script.get_current_head()

            with self._store.engine.connect() as conn:
                current = MigrationContext.configure(conn).get_current_revision()

            pending: list[dict[str, Any]] = []
            if current != head and head is not None:
                for rev in script.iterate_revisions(head, current or "base"):
                    pending.append({"revision": rev.revision, "description": rev.doc or ""})
        except Exception as exc:
            logger.warning("Migration check failed: %s", exc)
            return self._fail(op, ErrorCode.CHECK_FAILED, f"Failed to check migrations: {exc}")

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "pending_count": len(pending),
                "pending": list(reversed(pending)),
                "current": current,
                "head": head,
            },
        )

    def apply(self) -> ServiceResult:
        """BACKUP → MIGRATE → VALIDATE → REPORT pipeline."""
        op = "upgrade"
        warnings: list[str] = []

        pending = self.check_pending()
        if not pending.ok:
            return pending
        if pending.data["pending_count"] == 0:
            return ServiceResult(
                ok=True,
                op=op,
                data={
                    "applied_count": 0,
                    "current": pending.data["head"],
                    "message": "Database is already up to date",
                },
            )

        check = CheckService(self._store)
        try:
            backup_path = check.backup_db()
        except Exception as exc:
            return self._fail(op, ErrorCode.BACKUP_FAILED, f"Backup failed: {exc}")

        try:
            cfg = build_config(self._db_url())
            if pending.data["current"] is None and self._tables_exist():
                # Schema predates version tracking: record it at head instead of re-creating tables.
                command.stamp(cfg, "head")
            else:
                command.upgrade(cfg, "head")
        except Exception as exc:
            logger.error("Migration failed, backup at %s", backup_path)
            return self._fail(
                op,
                ErrorCode.MIGRATION_FAILED,
                f"Migration failed: {exc}. Backup at: {backup_path}",
                backup_path=str(backup_path),
            )

        integrity = check.check()
        if integrity.ok:
            errors = sum(1 for i in integrity.data["issues"] if i["severity"] == SEVERITY_ERROR)
            if errors:
                warnings.append(f"Post-migration integrity check found {errors} errors")
        else:
            warnings.append("Post-migration integrity check could not run")

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "applied_count": pending.data["pending_count"],
                "current": pending.data["head"],
                "backup_path": str(backup_path),
            },
            warnings=warnings,
        )
