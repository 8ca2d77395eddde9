"""Command group: circulation (issue, return, ledger)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from shelfctl.commands._base import ShelfCommand, ShelfGroup
from shelfctl.services.circulation import CirculationService

if TYPE_CHECKING:
    from shelfctl.commands._context import AppContext

_LOAN_EXAMPLES = """\
  shelfctl loan issue BK-0001 MEM-0001
  shelfctl loan return LOAN-0001
  shelfctl loan list --status active
  shelfctl loan stats"""

_ISSUE_EXAMPLES = """\
  shelfctl issue BK-0001 MEM-0001
  shelfctl issue BK-0001 MEM-0001 --actor desk-2
  shelfctl --sync issue BK-0001 MEM-0001"""

_RETURN_EXAMPLES = """\
  shelfctl return LOAN-0001
  shelfctl --json return LOAN-0001"""


@click.group(cls=ShelfGroup, examples=_LOAN_EXAMPLES)
@click.pass_obj
def loan(app: AppContext) -> None:
    """Issue and return books; browse the loan ledger."""


@click.command(name="issue", cls=ShelfCommand, examples=_ISSUE_EXAMPLES)
@click.argument("book_id")
@click.argument("member_id")
@click.option("--actor", "actor_id", default=None, help="Who performed the issue (default from config).")
@click.pass_obj
def issue(app: AppContext, book_id: str, member_id: str, actor_id: str | None) -> None:
    """Issue one copy of BOOK_ID to MEMBER_ID."""
    app.emit(CirculationService(app.store).issue(book_id, member_id, actor_id=actor_id))


@click.command(name="return", cls=ShelfCommand, examples=_RETURN_EXAMPLES)
@click.argument("loan_id")
@click.pass_obj
def return_cmd(app: AppContext, loan_id: str) -> None:
    """Return the copy held under LOAN_ID."""
    app.emit(CirculationService(app.store).return_loan(loan_id))


loan.add_command(issue)
loan.add_command(return_cmd)


@loan.command(examples="  shelfctl loan get LOAN-0001")
@click.argument("loan_id")
@click.pass_obj
def get(app: AppContext, loan_id: str) -> None:
    """Show one ledger entry."""
    app.emit(CirculationService(app.store).get_loan(loan_id))


@loan.command(
    name="list",
    examples="""\
  shelfctl loan list
  shelfctl loan list --status active --member MEM-0001
  shelfctl loan list --book BK-0001 --limit 50""",
)
@click.option("--status", type=click.Choice(["active", "returned"]), default=None)
@click.option("--member", "member_id", default=None, help="Only loans of this member.")
@click.option("--book", "book_id", default=None, help="Only loans of this book.")
@click.option("--limit", default=20, type=int, help="Max results.")
@click.option("--offset", default=0, type=int, help="Skip this many results.")
@click.pass_obj
def list_cmd(
    app: AppContext,
    status: str | None,
    member_id: str | None,
    book_id: str | None,
    limit: int,
    offset: int,
) -> None:
    """List ledger entries, newest first."""
    svc = CirculationService(app.store)
    app.emit(
        svc.list_loans(status=status, member_id=member_id, book_id=book_id, limit=limit, offset=offset)
    )


@loan.command(examples="  shelfctl loan stats")
@click.pass_obj
def stats(app: AppContext) -> None:
    """Active/returned counts and recent loans."""
    app.emit(CirculationService(app.store).stats())


@loan.command(examples="  shelfctl loan purge LOAN-0001")
@click.argument("loan_id")
@click.pass_obj
def purge(app: AppContext, loan_id: str) -> None:
    """Delete a returned loan from the ledger."""
    app.emit(CirculationService(app.store).purge_loan(loan_id))
