"""Command group: undelivered notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from shelfctl.commands._base import ShelfGroup
from shelfctl.services.notifications import NotificationService

if TYPE_CHECKING:
    from shelfctl.commands._context import AppContext


@click.group(
    cls=ShelfGroup,
    examples="""\
  shelfctl events list
  shelfctl events drain""",
)
@click.pass_obj
def events(app: AppContext) -> None:
    """Inspect and retry issue/return notifications."""


@events.command(name="list", examples="  shelfctl --json events list")
@click.pass_obj
def list_cmd(app: AppContext) -> None:
    """Show pending, failed, and dead-lettered notifications."""
    app.emit(NotificationService(app.store).list_undelivered())


@events.command(examples="  shelfctl events drain")
@click.pass_obj
def drain(app: AppContext) -> None:
    """Retry pending and failed notifications once."""
    app.emit(NotificationService(app.store).drain())
