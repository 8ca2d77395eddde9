"""Shared Click classes for shelfctl commands.

Every command and group accepts an ``examples=`` keyword. When given, an
eager ``--examples`` flag is added that prints the text and exits before
any library is opened, so ``--help`` can stay to one screen.
"""

from __future__ import annotations

from typing import Any

import click


class _ExamplesMixin:
    examples: str | None

    def _init_examples(self, examples: str | None) -> None:
        self.examples = examples
        if not examples:
            return

        def show(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
            if value:
                click.echo(f"Examples for '{ctx.command_path}':\n")
                click.echo(examples)
                ctx.exit(0)

        self.params.append(  # type: ignore[attr-defined]
            click.Option(
                ["--examples"],
                is_flag=True,
                expose_value=False,
                is_eager=True,
                callback=show,
                help="Show usage examples.",
            )
        )


class ShelfCommand(_ExamplesMixin, click.Command):
    """A leaf command (``issue``, ``book add``, ...)."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)


class ShelfGroup(_ExamplesMixin, click.Group):
    """A command group; ``@group.command()`` builds :class:`ShelfCommand` by default."""

    command_class = ShelfCommand

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._init_examples(examples)
