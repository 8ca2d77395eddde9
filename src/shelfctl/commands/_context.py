"""AppContext — shared Click context for all commands.

Created once by the root CLI group and handed to subcommands via
``@click.pass_obj``. Opens the library lazily and routes results to
stdout/stderr with the right exit code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from shelfctl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from shelfctl.config.settings import ShelfSettings
    from shelfctl.infrastructure.store import LibraryStore
    from shelfctl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    The store is created on first use so ``--help`` and ``--version``
    never touch the database.
    """

    def __init__(self, settings: ShelfSettings) -> None:
        self.settings = settings
        self._store: LibraryStore | None = None

        from shelfctl.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from shelfctl.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def store(self) -> LibraryStore:
        """The library store (created lazily on first access)."""
        if self._store is None:
            from shelfctl.infrastructure.store import LibraryStore

            self._store = LibraryStore(self.settings)
            self._store.init_event_bus(sync=self.settings.sync)
        return self._store

    def close(self) -> None:
        """Wait for in-flight notifications and release the database."""
        if self._store is not None:
            self._store.close()
            self._store = None

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success: stdout; warnings to stderr unless in JSON mode.
        * Failure: stderr, exit code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        if result.ok:
            click.echo(output)
            if not settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)
