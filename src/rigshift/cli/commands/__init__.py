"""Subcommand groups for the rigshift CLI."""

from __future__ import annotations

import typer
from rich.console import Console

from rigshift.config import ConfigError, RigshiftConfig

console = Console()
err_console = Console(stderr=True)


def get_config(ctx: typer.Context) -> RigshiftConfig:
    """Config object set up by the root callback."""
    if isinstance(ctx.obj, RigshiftConfig):
        return ctx.obj
    return RigshiftConfig()


def fail(message: str, code: int = 1) -> typer.Exit:
    """Print an error and return the Exit to raise."""
    err_console.print(f"[red]Error:[/red] {message}")
    return typer.Exit(code)


__all__ = ["ConfigError", "console", "err_console", "fail", "get_config"]
