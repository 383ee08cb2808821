"""Ledger inspection commands."""

from __future__ import annotations

import json
from typing import Annotated

import typer
from rich.table import Table

from rigshift.config import RigshiftConfig
from rigshift.ledger import EventLedger, JsonlLedgerStore, LedgerStoreError, get_hash_chain

from . import ConfigError, console, fail, get_config

app = typer.Typer(help="Inspect and verify the event ledger", no_args_is_help=True)

INTEGRITY_EXIT_CODE = 2


def open_ledger(config: RigshiftConfig) -> EventLedger:
    """Load the configured ledger file read-only."""
    try:
        return EventLedger(
            store=JsonlLedgerStore(config.get_ledger_path()),
            hash_chain=get_hash_chain(config.get_hash_algorithm()),
            device_id=config.get_device_id(),
        )
    except (LedgerStoreError, ConfigError) as exc:
        raise fail(str(exc)) from exc


@app.command()
def show(
    ctx: typer.Context,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Show only the last N events")] = 20,
    json_output: Annotated[bool, typer.Option("--json", help="Machine-readable JSON output")] = False,
) -> None:
    """List recorded events, newest last."""
    ledger = open_ledger(get_config(ctx))
    events = list(ledger.events)
    start = max(0, len(events) - limit) if limit > 0 else 0
    shown = events[start:]

    if json_output:
        typer.echo(json.dumps([e.to_dict() for e in shown], indent=2, ensure_ascii=False))
        return

    if not shown:
        console.print("[dim]Ledger is empty[/dim]")
        return

    table = Table(title=f"Event Ledger ({len(events)} events)", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Time")
    table.add_column("Type", style="cyan")
    table.add_column("Operator")
    table.add_column("Rig")
    table.add_column("Sync")
    table.add_column("Digest", style="dim")
    for offset, event in enumerate(shown):
        table.add_row(
            str(start + offset),
            event.timestamp,
            event.type,
            event.operator_id or "-",
            event.rig_id or "-",
            str(event.sync_status),
            event.digest[-12:],
        )
    console.print(table)
    console.print(f"Verification code: [bold]{ledger.verification_code or '-'}[/bold]")


@app.command()
def verify(ctx: typer.Context) -> None:
    """Recompute the hash chain from genesis.

    Exits with status 2 when the chain is broken.
    """
    ledger = open_ledger(get_config(ctx))
    failure = ledger.find_integrity_failure()
    if failure is not None:
        console.print(f"[bold red]INTEGRITY FAILURE[/bold red] at {failure}")
        console.print("The event history was modified after it was recorded.")
        raise typer.Exit(INTEGRITY_EXIT_CODE)
    console.print(
        f"[green]Ledger intact[/green]: {len(ledger)} events, "
        f"hash={ledger.hash_chain.name}, code {ledger.verification_code or '-'}"
    )


@app.command()
def code(ctx: typer.Context) -> None:
    """Print the current verification code."""
    ledger = open_ledger(get_config(ctx))
    if not ledger.verification_code:
        raise fail("Ledger is empty; there is no verification code yet")
    typer.echo(ledger.verification_code)
