"""Reference data commands."""

from __future__ import annotations

from typing import Annotated, Optional

import typer
from rich.table import Table

from rigshift.catalog import Catalog, CatalogError, load_catalog
from rigshift.gates.warehouse import WarehouseGate

from . import ConfigError, console, fail, get_config

app = typer.Typer(help="Show rigs and warehouse stock", no_args_is_help=True)


def _load(ctx: typer.Context) -> Catalog:
    try:
        return load_catalog(get_config(ctx).get_catalog_path())
    except (CatalogError, ConfigError) as exc:
        raise fail(str(exc)) from exc


@app.command()
def rigs(ctx: typer.Context) -> None:
    """List rigs and whether warehouse stock allows a shift on each."""
    catalog = _load(ctx)
    warehouse = WarehouseGate(catalog.warehouse)

    table = Table(title="Rigs", show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Model", style="cyan")
    table.add_column("Location")
    table.add_column("Stock")
    for rig in catalog.rigs:
        stock = "[green]ok[/green]" if warehouse.has_sufficient_stock(rig.model_id) else "[red]shortage[/red]"
        table.add_row(rig.id, rig.name, rig.model_id, rig.location, stock)
    console.print(table)


def _fmt(quantity: float) -> str:
    return f"{quantity:g}"


@app.command()
def stock(
    ctx: typer.Context,
    model: Annotated[Optional[str], typer.Option("--model", help="Only items for this equipment model")] = None,
) -> None:
    """Warehouse stock with critical and low levels highlighted."""
    catalog = _load(ctx)
    warehouse = WarehouseGate(catalog.warehouse)
    items = warehouse.items_for_model(model) if model else warehouse.items
    if not items:
        console.print(f"[yellow]No warehouse items for {model}[/yellow]")
        return

    critical = {i.id for i in warehouse.critical_items()}
    low = {i.id for i in warehouse.low_stock_items()}
    table = Table(title="Warehouse Stock", show_header=True, header_style="bold")
    table.add_column("Item", style="dim")
    table.add_column("Name")
    table.add_column("Model", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Critical", justify="right")
    table.add_column("Level")
    for item in items:
        if item.id in critical:
            level = "[red]critical[/red]"
        elif item.id in low:
            level = "[yellow]low[/yellow]"
        else:
            level = "[green]ok[/green]"
        table.add_row(
            item.id,
            item.name,
            item.model_id,
            f"{_fmt(item.quantity)} {item.unit}".strip(),
            _fmt(item.critical),
            level,
        )
    console.print(table)
