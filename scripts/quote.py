#!/usr/bin/env python3
"""
Quote script.

Shows the best quote and the scored route options for a swap.
Never executes anything.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from swapkit.client import SwapClient
from swapkit.core.config import Config
from swapkit.core.errors import SwapKitError
from swapkit.core.models import RouteFilter

app = typer.Typer(help="Quote and compare swap routes")
console = Console()

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

RISK_STYLES = {"low": "green", "medium": "yellow", "high": "red"}


def print_routes(options) -> None:
    table = Table(title="Route Options")
    table.add_column("#", style="dim")
    table.add_column("DEX Path", style="cyan")
    table.add_column("Out Amount", justify="right")
    table.add_column("Impact", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Est. Time", justify="right")
    table.add_column("Risk")

    for i, option in enumerate(options, 1):
        risk = option.risk_level.value
        table.add_row(
            str(i),
            " > ".join(option.dex_path),
            str(option.route.out_amount),
            f"{option.route.price_impact_pct:.4f}%",
            f"{option.score:.2f}",
            f"{option.estimated_execution_seconds:.1f}s",
            f"[{RISK_STYLES[risk]}]{risk}[/{RISK_STYLES[risk]}]",
        )

    console.print(table)


@app.command()
def main(
    input_asset: str = typer.Argument(..., help="Input mint or symbol (SOL, USDC, USDT)"),
    output_asset: str = typer.Argument(..., help="Output mint or symbol"),
    amount: int = typer.Argument(..., help="Amount in smallest unit (lamports for SOL)"),
    include: Optional[List[str]] = typer.Option(None, "--include", "-i", help="Only routes touching this DEX"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-x", help="Drop routes touching this DEX"),
    max_hops: Optional[int] = typer.Option(None, "--max-hops", help="Maximum number of hops"),
    prefer_speed: bool = typer.Option(False, "--fast", help="Prefer fewer hops"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """
    Compare routes for a swap.

    Example:
        python scripts/quote.py SOL USDC 100000000 --exclude Raydium
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = Config.from_env()
    route_filter = RouteFilter(
        include_dexes=include or None,
        exclude_dexes=exclude or None,
        max_hops=max_hops,
        prefer_speed=prefer_speed,
    )

    async def run():
        async with SwapClient(config) as client:
            return await client.get_route_options(input_asset, output_asset, amount, route_filter)

    try:
        options = asyncio.run(run())
    except SwapKitError as e:
        console.print(f"[red]ERROR: {e}[/red]")
        raise typer.Exit(1)

    if not options:
        console.print("[yellow]No route matches the given filter[/yellow]")
        raise typer.Exit(0)

    print_routes(options)


if __name__ == "__main__":
    app()
