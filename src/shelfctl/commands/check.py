"""Command: ledger integrity check."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from shelfctl.commands._base import ShelfCommand

if TYPE_CHECKING:
    from shelfctl.commands._context import AppContext


@click.command(
    cls=ShelfCommand,
    examples="""\
  shelfctl check
  shelfctl check --errors-only
  shelfctl check --backup
  shelfctl --json check""",
)
@click.option("--errors-only", is_flag=True, help="Hide warnings.")
@click.option("--backup", is_flag=True, help="Write a database backup before checking.")
@click.pass_obj
def check(app: AppContext, errors_only: bool, backup: bool) -> None:
    """Audit copy counters against the loan ledger.

    Exits 1 when any error-level issue is found.
    """
    from shelfctl.services.check import SEVERITY_ERROR, CheckService
    from shelfctl.services.result import ErrorCode, ServiceError, ServiceResult

    svc = CheckService(app.store)
    warnings: list[str] = []
    if backup:
        warnings.append(f"Backup written to {svc.backup_db()}")

    result = svc.check()
    if not result.ok:
        app.emit(result)
        return

    issues = result.data["issues"]
    if errors_only:
        issues = [i for i in issues if i["severity"] == SEVERITY_ERROR]
    data = {**result.data, "issues": issues, "count": len(issues)}

    if result.data["errors"]:
        app.emit(
            ServiceResult(
                ok=False,
                op="check",
                data=data,
                error=ServiceError(
                    code=ErrorCode.INVARIANT_VIOLATION,
                    message=f"{result.data['errors']} integrity error(s) found",
                    detail={"errors": result.data["errors"]},
                ),
            )
        )
        return
    app.emit(result.model_copy(update={"data": data, "warnings": [*result.warnings, *warnings]}))
