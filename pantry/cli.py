"""Pantry CLI.

Commands:
- init: Initialize database schema
- seed: Load a small demo catalog (centers, ingredients, vendors)
- refresh: Run an ingredient price refresh in the foreground
- refresh-status: Show refresh state, cooldown and last summary
- cancel-refresh: Reset a stuck "running" status left by a crashed process
- prices: Show automatic prices
- web serve: Run the FastAPI app
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from sqlalchemy import func, select

from pantry.config import get_config
from pantry.core.logging import configure_logging
from pantry.db.connection import close_db, get_session, get_session_factory, init_db
from pantry.db.models import CenterModel, IngredientModel, VendorModel
from pantry.db.price_queries import list_ingredients_with_prices
from pantry.pipeline.errors import RefreshError
from pantry.pipeline.service import RefreshService
from pantry.pipeline.types import RefreshState

app = typer.Typer(
    name="pantry",
    help="Pantry - ingredient price catalog and automatic price refresh",
    no_args_is_help=True,
)

web_cli = typer.Typer(help="Web UI / API")
app.add_typer(web_cli, name="web")

console = Console()

DEMO_CENTERS = [("Young Child Development Center", "Appleton", "WI")]
DEMO_INGREDIENTS = [
    ("Whole Milk", "dairy", "gallon"),
    ("Bananas", "produce", "lb"),
    ("Whole Wheat Bread", "grain", "each"),
    ("Cheddar Cheese", "dairy", "lb"),
    ("Chicken Breast", "protein", "lb"),
    ("Green Beans", "frozen", "lb"),
]
DEMO_VENDORS = ["Aldi", "Costco", "Sam's Club", "Walmart"]


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        try:
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def seed():
    """Load a demo catalog. Existing names are left untouched."""

    async def _seed() -> tuple[int, int, int]:
        added = [0, 0, 0]
        try:
            async with get_session() as session:
                center_count = await session.scalar(
                    select(func.count()).select_from(CenterModel)
                )
                if not center_count:
                    for name, city, state in DEMO_CENTERS:
                        session.add(CenterModel(name=name, city=city, state=state))
                        added[0] += 1

                existing = set(
                    (await session.execute(select(IngredientModel.name))).scalars()
                )
                for name, category, unit in DEMO_INGREDIENTS:
                    if name not in existing:
                        session.add(IngredientModel(name=name, category=category, unit=unit))
                        added[1] += 1

                existing = set((await session.execute(select(VendorModel.name))).scalars())
                for name in DEMO_VENDORS:
                    if name not in existing:
                        session.add(VendorModel(name=name))
                        added[2] += 1
        finally:
            await close_db()
        return added[0], added[1], added[2]

    centers, ingredients, vendors = asyncio.run(_seed())
    console.print(
        f"[bold green]✓[/bold green] Seeded {centers} centers, "
        f"{ingredients} ingredients, {vendors} vendors"
    )


@app.command()
def refresh(
    force: bool = typer.Option(False, "--force", help="Ignore the cooldown window"),
):
    """Run an ingredient price refresh and wait for it to finish."""
    configure_logging()
    config = get_config()

    async def _refresh():
        service = RefreshService(config, get_session_factory())
        try:
            return await service.run_to_completion(force=force)
        finally:
            await service.aclose()
            await close_db()

    try:
        summary = asyncio.run(_refresh())
    except RefreshError as e:
        console.print(f"[bold red]✗[/bold red] {e}")
        raise typer.Exit(code=1)

    table = Table(title="Price refresh")
    table.add_column("Updated", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Total", justify="right")
    table.add_row(
        str(summary.updated), str(summary.skipped), str(summary.failed), str(summary.total)
    )
    console.print(table)


@app.command(name="refresh-status")
def refresh_status():
    """Show refresh status, cooldown and the last run's counters."""
    config = get_config()

    async def _status():
        service = RefreshService(config, get_session_factory())
        try:
            return await service.status()
        finally:
            await close_db()

    report = asyncio.run(_status())

    console.print(f"[bold]Status:[/bold] {report.status.value}")
    console.print(
        f"[bold]Last refresh:[/bold] "
        f"{report.last_refresh.isoformat() if report.last_refresh else 'never'}"
    )
    if report.can_refresh:
        console.print("[green]A refresh can start now[/green]")
    else:
        console.print(f"[yellow]Next refresh allowed in {report.hours_until_next}h[/yellow]")
    if report.summary:
        s = report.summary
        console.print(
            f"[bold]Last run:[/bold] {s.updated} updated, {s.skipped} skipped, "
            f"{s.failed} failed of {s.total}"
        )


@app.command(name="cancel-refresh")
def cancel_refresh():
    """Mark a stuck "running" status as error.

    Only use when no process is running a refresh, e.g. after a crash.
    """
    config = get_config()

    async def _reset() -> bool:
        service = RefreshService(config, get_session_factory())
        try:
            status = await service.store.load()
            if status.state is not RefreshState.RUNNING:
                return False
            await service.store.mark_error()
            return True
        finally:
            await close_db()

    if asyncio.run(_reset()):
        console.print("[bold green]✓[/bold green] Refresh status reset to error")
    else:
        console.print("No refresh is marked as running")


@app.command()
def prices(
    center: Optional[int] = typer.Option(None, "--center", help="Include this center's manual prices"),
):
    """Show known ingredient prices."""

    async def _prices():
        try:
            async with get_session() as session:
                rows = await list_ingredients_with_prices(session, center_id=center)
                return [
                    (ingredient.name, [(p.vendor.name, p.price, p.unit, p.is_automatic) for p in price_rows])
                    for ingredient, price_rows in rows
                ]
        finally:
            await close_db()

    table = Table(title="Ingredient prices")
    table.add_column("Ingredient")
    table.add_column("Vendor")
    table.add_column("Price", justify="right")
    table.add_column("Unit")
    table.add_column("Source")

    for name, price_rows in asyncio.run(_prices()):
        if not price_rows:
            table.add_row(name, "-", "-", "-", "-")
            continue
        for vendor, price, unit, automatic in price_rows:
            table.add_row(name, vendor, f"${price:.2f}", unit, "auto" if automatic else "manual")

    console.print(table)


@web_cli.command("serve")
def web_serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(8001, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the FastAPI app.

    A single worker: the refresh runner is per process.
    """
    import uvicorn

    typer.echo(f"Starting Pantry API on http://{host}:{port}")
    uvicorn.run("pantry.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
