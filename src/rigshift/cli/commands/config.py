"""Configuration commands."""

from __future__ import annotations

import json
from typing import Annotated
from urllib.parse import urlparse

import typer

from . import ConfigError, console, fail, get_config

app = typer.Typer(help="Show and change device configuration", no_args_is_help=True)


@app.command()
def show(ctx: typer.Context) -> None:
    """Print the effective configuration as JSON."""
    config = get_config(ctx)
    try:
        data = config.as_dict()
    except ConfigError as exc:
        raise fail(str(exc)) from exc
    console.print(f"[dim]{config.config_file}[/dim]")
    typer.echo(json.dumps(data, indent=2))


@app.command("set-server")
def set_server(
    ctx: typer.Context,
    url: Annotated[str, typer.Argument(help="Base URL of the sync server")],
) -> None:
    """Set the sync server URL."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise fail(f"Not an http(s) URL: {url}")
    config = get_config(ctx)
    config.set_server_url(url.rstrip("/"))
    console.print(f"[green]Server URL set to:[/green] {url.rstrip('/')}")
