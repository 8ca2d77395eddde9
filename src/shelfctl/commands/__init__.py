"""Subcommand modules for shelfctl.

register_commands() defers imports so ``shelfctl --help`` stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from shelfctl.commands.book import book
    from shelfctl.commands.events import events
    from shelfctl.commands.loan import loan
    from shelfctl.commands.member import member

    cli.add_command(book)
    cli.add_command(member)
    cli.add_command(loan)
    cli.add_command(events)

    # --- Standalone commands ---
    from shelfctl.commands.check import check
    from shelfctl.commands.loan import issue, return_cmd
    from shelfctl.commands.upgrade import upgrade

    cli.add_command(issue)
    cli.add_command(return_cmd)
    cli.add_command(check)
    cli.add_command(upgrade)
