"""Command group: member registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from shelfctl.commands._base import ShelfGroup
from shelfctl.services.members import MemberService

if TYPE_CHECKING:
    from shelfctl.commands._context import AppContext

_MEMBER_EXAMPLES = """\
  shelfctl member add "Ada Lovelace" --email ada@example.org --phone 555-0100
  shelfctl member list --search ada
  shelfctl member get MEM-0001
  shelfctl member remove MEM-0001"""


@click.group(cls=ShelfGroup, examples=_MEMBER_EXAMPLES)
@click.pass_obj
def member(app: AppContext) -> None:
    """Register and manage library members."""


@member.command(examples='  shelfctl member add "Ada Lovelace" --email ada@example.org --phone 555-0100')
@click.argument("name")
@click.option("--email", required=True, help="Contact address for notifications.")
@click.option("--phone", required=True)
@click.pass_obj
def add(app: AppContext, name: str, email: str, phone: str) -> None:
    """Register a new member."""
    app.emit(MemberService(app.store).register(name, email=email, phone=phone))


@member.command(examples="  shelfctl member get MEM-0001")
@click.argument("member_id")
@click.pass_obj
def get(app: AppContext, member_id: str) -> None:
    """Show one member with their active-loan count."""
    app.emit(MemberService(app.store).get_member(member_id))


@member.command(
    name="list",
    examples="""\
  shelfctl member list
  shelfctl member list --search example.org --limit 50""",
)
@click.option("--search", default=None, help="Match name, email, or phone.")
@click.option("--limit", default=20, type=int, help="Max results.")
@click.option("--offset", default=0, type=int, help="Skip this many results.")
@click.pass_obj
def list_cmd(app: AppContext, search: str | None, limit: int, offset: int) -> None:
    """List members, most recently joined first."""
    app.emit(MemberService(app.store).list_members(search=search, limit=limit, offset=offset))


@member.command(examples="  shelfctl member edit MEM-0001 --email ada@newmail.org")
@click.argument("member_id")
@click.option("--name", default=None)
@click.option("--email", default=None)
@click.option("--phone", default=None)
@click.pass_obj
def edit(
    app: AppContext,
    member_id: str,
    name: str | None,
    email: str | None,
    phone: str | None,
) -> None:
    """Edit a member's contact details."""
    changes = {k: v for k, v in {"name": name, "email": email, "phone": phone}.items() if v is not None}
    if not changes:
        raise click.UsageError("Nothing to change; pass --name, --email, or --phone.")
    app.emit(MemberService(app.store).update_member(member_id, changes=changes))


@member.command(examples="  shelfctl member remove MEM-0001")
@click.argument("member_id")
@click.pass_obj
def remove(app: AppContext, member_id: str) -> None:
    """Remove a member who holds no books."""
    app.emit(MemberService(app.store).remove_member(member_id))
