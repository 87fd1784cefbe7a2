#!/usr/bin/env python3
"""
Automation runner.

Loads recurring swaps and triggers from a JSON plan file and runs them
until interrupted. Swaps are signed with WALLET_PRIVATE_KEY.

Plan file format:
    {
      "swaps": [
        {"cron": "0 * * * *", "input": "USDC", "output": "SOL", "amount": 10000000}
      ],
      "triggers": [
        {"kind": "price", "asset": "SOL", "operator": "gt", "threshold": 200,
         "action": "sell", "params": {"amount": 500000000}}
      ]
    }
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncio
import json
import logging
import signal

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from swapkit.client import SwapClient
from swapkit.core.config import Config
from swapkit.core.errors import SwapKitError
from swapkit.core.events import Event, EventType

app = typer.Typer(help="Run scheduled swaps and triggers")
console = Console()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("automate")

EVENT_STYLES = {
    EventType.SWAP_EXECUTED: "green",
    EventType.TRIGGER_EXECUTED: "green",
    EventType.SWAP_FAILED: "red",
    EventType.TRIGGER_FAILED: "red",
    EventType.TRIGGER_CHECK_FAILED: "yellow",
}


def print_event(event: Event) -> None:
    style = EVENT_STYLES.get(event.type)
    if style is None:
        return

    subject = event.payload.get("config") or event.payload.get("condition")
    detail = event.payload.get("error") or getattr(event.payload.get("result"), "signature", "")
    console.print(f"[{style}]{event.type.value}[/{style}] {getattr(subject, 'id', '')} {detail}")


def load_plan(client: SwapClient, plan_file: Path) -> None:
    with open(plan_file, "r") as f:
        plan = json.load(f)

    for swap in plan.get("swaps", []):
        client.schedule_recurring_swap(
            swap["cron"],
            swap["input"],
            swap["output"],
            swap["amount"],
            owner_account=swap.get("owner"),
            enabled=swap.get("enabled", True),
            max_slippage_bps=swap.get("max_slippage_bps"),
        )

    for trigger in plan.get("triggers", []):
        client.set_trigger(
            trigger["kind"],
            trigger["operator"],
            trigger["threshold"],
            trigger["action"],
            watched_asset=trigger.get("asset"),
            action_parameters=trigger.get("params"),
            enabled=trigger.get("enabled", True),
        )


def print_status(client: SwapClient, health: dict) -> None:
    table = Table(title="SwapKit Automation", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    status = client.get_status()
    table.add_row("Mode", client.config.mode)
    table.add_row("Wallet", str(client.wallet.pubkey) if client.wallet else "Not configured")
    table.add_row("Scheduled Swaps", str(status["scheduled_swap_count"]))
    table.add_row("Triggers", str(status["trigger_count"]))
    table.add_row("Trigger Poll", f"{client.config.trigger_poll_interval:.0f}s")
    table.add_row("Jupiter", "OK" if health["jupiter"] else "[red]DOWN[/red]")
    table.add_row("Solana RPC", "OK" if health["solana"] else "[red]DOWN[/red]")

    console.print(table)
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")


@app.command()
def main(
    plan_file: Path = typer.Argument(..., exists=True, help="JSON plan file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
):
    """
    Run recurring swaps and triggers from a plan file.

    Example:
        python scripts/automate.py plan.json
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = Config.from_env()

    if not config.wallet_private_key:
        console.print("[red]ERROR: WALLET_PRIVATE_KEY not set.[/red]")
        raise typer.Exit(1)

    if not config.is_live:
        console.print("[yellow]MODE is not LIVE. Set MODE=LIVE to run the plan.[/yellow]")
        raise typer.Exit(1)

    async def run():
        async with SwapClient(config) as client:
            try:
                load_plan(client, plan_file)
            except (SwapKitError, KeyError, ValueError) as e:
                console.print(f"[red]Invalid plan: {e}[/red]")
                raise typer.Exit(1)

            client.subscribe(None, print_event)
            print_status(client, await client.health_check())

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, client.stop)

            console.print(Panel(
                "[bold]SwapKit - Jupiter Swap Automation[/bold]\n\n"
                "Recurring swaps run on their cron schedules.\n"
                "Triggers are checked on every poll interval.",
                title="Starting",
                border_style="blue",
            ))
            await client.serve()

    asyncio.run(run())
    console.print("\n[yellow]Stopped[/yellow]")


if __name__ == "__main__":
    app()
