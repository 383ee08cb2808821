"""rigshift command line."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer

from rigshift import __version__
from rigshift.config import RigshiftConfig

from .commands import catalog, config, ledger, sync

app = typer.Typer(
    name="rigshift",
    help="Shift checklist ledger and offline sync for drilling rigs",
    no_args_is_help=True,
)
app.add_typer(ledger.app, name="ledger")
app.add_typer(sync.app, name="sync")
app.add_typer(catalog.app, name="catalog")
app.add_typer(config.app, name="config")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"rigshift {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[
        Optional[Path], typer.Option("--config", help="Config file (default ~/.rigshift/config.toml)")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
    version: Annotated[
        bool,
        typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version"),
    ] = False,
) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = RigshiftConfig(config_file)


__all__ = ["app", "main"]
