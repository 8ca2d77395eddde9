"""Command group: catalog management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from shelfctl.commands._base import ShelfGroup
from shelfctl.services.catalog import CatalogService

if TYPE_CHECKING:
    from shelfctl.commands._context import AppContext

_BOOK_EXAMPLES = """\
  shelfctl book add "Dune" --author "Frank Herbert" --isbn 9780441013593 --category Fiction --copies 3
  shelfctl book list --search herbert
  shelfctl book get BK-0001
  shelfctl book set-copies BK-0001 5
  shelfctl book withdraw BK-0001"""


@click.group(cls=ShelfGroup, examples=_BOOK_EXAMPLES)
@click.pass_obj
def book(app: AppContext) -> None:
    """Catalog titles and manage copy counts."""


@book.command(
    examples="""\
  shelfctl book add "Dune" --author "Frank Herbert" --isbn 978-0441013593 --category Fiction
  shelfctl --json book add "SICP" --author Abelson --isbn 0262510871 --category CS --copies 2"""
)
@click.argument("title")
@click.option("--author", required=True, help="Author name.")
@click.option("--isbn", required=True, help="ISBN-10 or ISBN-13 (hyphens allowed).")
@click.option("--category", required=True, help="Shelf category.")
@click.option("--copies", "total_copies", default=1, type=int, show_default=True, help="Copies owned.")
@click.pass_obj
def add(app: AppContext, title: str, author: str, isbn: str, category: str, total_copies: int) -> None:
    """Catalog a new title."""
    svc = CatalogService(app.store)
    app.emit(
        svc.add_book(title, author=author, isbn=isbn, category=category, total_copies=total_copies)
    )


@book.command(examples="  shelfctl book get BK-0001")
@click.argument("book_id")
@click.pass_obj
def get(app: AppContext, book_id: str) -> None:
    """Show one title with its active-loan count."""
    app.emit(CatalogService(app.store).get_book(book_id))


@book.command(
    name="list",
    examples="""\
  shelfctl book list
  shelfctl book list --category fiction --limit 50
  shelfctl -q book list --search tolkien""",
)
@click.option("--search", default=None, help="Match title, author, or category.")
@click.option("--category", default=None, help="Filter by category.")
@click.option("--limit", default=20, type=int, help="Max results.")
@click.option("--offset", default=0, type=int, help="Skip this many results.")
@click.pass_obj
def list_cmd(
    app: AppContext,
    search: str | None,
    category: str | None,
    limit: int,
    offset: int,
) -> None:
    """List cataloged titles, newest first."""
    svc = CatalogService(app.store)
    app.emit(svc.list_books(search=search, category=category, limit=limit, offset=offset))


@book.command(
    examples="""\
  shelfctl book edit BK-0001 --title "Dune (Deluxe)"
  shelfctl book edit BK-0001 --category "Science Fiction" --copies 4"""
)
@click.argument("book_id")
@click.option("--title", default=None)
@click.option("--author", default=None)
@click.option("--isbn", default=None)
@click.option("--category", default=None)
@click.option("--copies", "total_copies", default=None, type=int, help="New total copy count.")
@click.pass_obj
def edit(
    app: AppContext,
    book_id: str,
    title: str | None,
    author: str | None,
    isbn: str | None,
    category: str | None,
    total_copies: int | None,
) -> None:
    """Edit a title's catalog fields."""
    changes: dict[str, Any] = {
        k: v
        for k, v in {
            "title": title,
            "author": author,
            "isbn": isbn,
            "category": category,
            "total_copies": total_copies,
        }.items()
        if v is not None
    }
    if not changes:
        raise click.UsageError("Nothing to change; pass at least one field option.")
    app.emit(CatalogService(app.store).update_book(book_id, changes=changes))


@book.command(
    name="set-copies",
    examples="""\
  shelfctl book set-copies BK-0001 5
  shelfctl book set-copies BK-0001 1""",
)
@click.argument("book_id")
@click.argument("total_copies", type=int)
@click.pass_obj
def set_copies(app: AppContext, book_id: str, total_copies: int) -> None:
    """Change how many copies the library owns.

    Refused if fewer copies than are currently on loan.
    """
    app.emit(CatalogService(app.store).set_total_copies(book_id, total_copies))


@book.command(examples="  shelfctl book withdraw BK-0001")
@click.argument("book_id")
@click.pass_obj
def withdraw(app: AppContext, book_id: str) -> None:
    """Remove a title from the catalog (no copies may be on loan)."""
    app.emit(CatalogService(app.store).withdraw_book(book_id))


@book.command(examples="  shelfctl book stats")
@click.pass_obj
def stats(app: AppContext) -> None:
    """Title and copy totals."""
    app.emit(CatalogService(app.store).stats())
