"""Entry point: the ``shelfctl`` group and the flags every subcommand inherits."""

from __future__ import annotations

from pathlib import Path

import click

from shelfctl import __version__
from shelfctl.commands import register_commands
from shelfctl.commands._context import AppContext
from shelfctl.config.settings import ShelfSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="shelfctl")
@click.option(
    "-L",
    "--library",
    "library_root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Library directory (default: where shelfctl.toml is found, else the CWD).",
)
@click.option("-c", "--config", "config_path", default=None, help="Read settings from this TOML file.")
@click.option("--json", "json_output", is_flag=True, help="Print results as JSON envelopes.")
@click.option("-q", "--quiet", is_flag=True, help="Print only record IDs.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging plus per-operation timings.")
@click.option("--log-json", is_flag=True, help="Write log lines to stderr as JSON.")
@click.option("--sync", is_flag=True, help="Deliver notifications before the command returns.")
@click.pass_context
def cli(
    ctx: click.Context,
    library_root: Path | None,
    config_path: str | None,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    sync: bool,
) -> None:
    """shelfctl — library circulation control."""
    settings = ShelfSettings.from_cli(
        config_path=config_path,
        library_root=library_root.resolve() if library_root else None,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
        sync=sync,
    )
    app = AppContext(settings)
    ctx.obj = app
    # The store is opened lazily; close it (and drain notifications) on exit.
    ctx.call_on_close(app.close)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)
