"""Sync queue commands."""

from __future__ import annotations

from datetime import timedelta

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rigshift.catalog import CatalogError
from rigshift.config import RigshiftConfig
from rigshift.ledger import LedgerStoreError
from rigshift.session import Session, open_session
from rigshift.sync.queue import QueueStats

from . import ConfigError, console, err_console, fail, get_config

app = typer.Typer(help="Push buffered events to the server", no_args_is_help=True)


_AGE_UNITS = (("d", 86400), ("h", 3600), ("m", 60), ("s", 1))


def format_age(age: timedelta) -> str:
    """Largest non-zero unit of ``age`` plus the next one when it is non-zero.

    Examples: '45s', '3m 12s', '2h 5m', '1d 4h', '3d'
    """
    remaining = max(int(age.total_seconds()), 0)
    counts: list[tuple[int, str]] = []
    for suffix, size in _AGE_UNITS:
        count, remaining = divmod(remaining, size)
        counts.append((count, suffix))
    while len(counts) > 1 and counts[0][0] == 0:
        counts.pop(0)
    (count, suffix), *rest = counts
    shown = f"{count}{suffix}"
    if rest and rest[0][0]:
        shown += f" {rest[0][0]}{rest[0][1]}"
    return shown


def format_queue_health(stats: QueueStats, size_kb: str, target_console: Console) -> None:
    """Render queue health as a summary panel plus retry and event type tables."""
    lines = [
        f"[bold]Queue Depth:[/bold] {stats.total_queued:,} event(s)",
        f"[bold]Pending:[/bold]     {stats.pending:,}",
        f"[bold]Failed:[/bold]      {stats.failed:,}",
        f"[bold]Synced:[/bold]      {stats.synced:,}",
        f"[bold]Size:[/bold]        {size_kb} KB",
    ]
    if stats.oldest_event_age is not None:
        lines.append(f"[bold]Oldest Event:[/bold] {format_age(stats.oldest_event_age)} ago")
    target_console.print(
        Panel("\n".join(lines), title="Queue Health", border_style="cyan", expand=False)
    )

    if stats.retry_distribution:
        retry_table = Table(title="Retry Distribution", show_header=True, header_style="bold", expand=False)
        retry_table.add_column("Bucket", style="dim")
        retry_table.add_column("Count", justify="right")
        for bucket in ("0 retries", "1-3 retries", "4+ retries"):
            if bucket in stats.retry_distribution:
                retry_table.add_row(bucket, str(stats.retry_distribution[bucket]))
        target_console.print(retry_table)

    if stats.top_event_types:
        type_table = Table(title="Top Event Types", show_header=True, header_style="bold", expand=False)
        type_table.add_column("Event Type", style="cyan")
        type_table.add_column("Count", justify="right")
        for event_type, count in stats.top_event_types:
            type_table.add_row(event_type, str(count))
        target_console.print(type_table)


def _open(config: RigshiftConfig) -> Session:
    try:
        return open_session(config, online=False)
    except (LedgerStoreError, ConfigError, CatalogError) as exc:
        raise fail(str(exc)) from exc


@app.command()
def status(ctx: typer.Context) -> None:
    """Show how many events are waiting to be delivered."""
    session = _open(get_config(ctx))
    queue = session.queue
    if len(queue) == 0:
        console.print("[green]All events synced[/green]")
        return
    format_queue_health(queue.stats(), queue.total_queue_size_kb(), console)


@app.command()
def push(ctx: typer.Context) -> None:
    """Deliver pending and failed events to the server."""
    config = get_config(ctx)
    session = _open(config)
    if len(session.queue) == 0:
        console.print("[green]Nothing to sync[/green]")
        return
    if not session.connectivity.probe(timeout=config.get_timeout()):
        raise fail(f"Server {config.get_server_url()} is unreachable; events stay queued")

    transport = session.queue.transport
    try:
        result = session.queue.sync_all()
    finally:
        close = getattr(transport, "close", None)
        if callable(close):
            close()

    console.print(
        f"Synced [green]{result.synced_count}[/green] of {result.attempted} event(s)"
    )
    if result.requeued_ids:
        err_console.print(f"[yellow]Warning:[/yellow] {len(result.requeued_ids)} event(s) will be retried")
    if result.failed_ids:
        err_console.print(
            f"[red]{len(result.failed_ids)} event(s) failed permanently;[/red] "
            "run 'rigshift sync retry-failed' to queue them again"
        )
    for message in result.error_messages:
        err_console.print(f"  [dim]{message}[/dim]")
    if result.error_count:
        raise typer.Exit(1)


@app.command("retry-failed")
def retry_failed(ctx: typer.Context) -> None:
    """Move permanently failed events back to pending."""
    session = _open(get_config(ctx))
    retried = session.queue.retry_failed_events()
    if retried == 0:
        console.print("No failed events")
        return
    console.print(f"Re-queued [bold]{retried}[/bold] failed event(s)")
