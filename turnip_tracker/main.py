"""
Turnip Tracker CLI - Main entry point.

Provides CLI commands for running the bot and inspecting stored prices.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import click
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from turnip_tracker.config import get_config
from turnip_tracker.shared.errors import NotFound, StoreUnavailable

console = Console()


@click.group()
def cli():
    """Turnip Tracker - Weekly turnip price tracking"""
    pass


@cli.command()
def test():
    """Test configuration and database connection."""
    config = get_config()
    missing = config.validate()
    if missing:
        console.print(f"[red]❌ Missing config: {', '.join(missing)}[/red]")
        return

    console.print("[green]✅ Configuration loaded[/green]")
    console.print(f"  Supabase: {config.supabase_url[:40]}...")
    console.print(f"  Timezone: {config.timezone}")

    from turnip_tracker.services.price_store import open_store

    with open_store(config) as store:
        success = store.ping()
    if success:
        console.print("[green]✅ Database connection OK[/green]")
    else:
        console.print("[red]❌ Database connection failed[/red]")


@cli.command()
def info():
    """Show configuration information."""
    config = get_config()

    console.print(Panel.fit(
        f"[bold]Supabase:[/bold] {config.supabase_url[:30]}...\n"
        f"[bold]Telegram:[/bold] {'Configured' if config.telegram_bot_token else 'Not configured'}\n"
        f"[bold]Timezone:[/bold] {config.timezone}\n"
        f"[bold]Morning until:[/bold] {config.morning_cutoff_hour}:00\n"
        f"[bold]Chart service:[/bold] {config.chart_base_url}\n"
        f"[bold]Environment:[/bold] {config.environment}",
        title="🔧 Configuration",
    ))

    missing = config.validate()
    if missing:
        console.print(f"[yellow]⚠️ Missing: {', '.join(missing)}[/yellow]")
    else:
        console.print("[green]✅ Configuration complete[/green]")


@cli.command()
def schema():
    """Print the SQL that creates the tracker tables."""
    from turnip_tracker.shared.supabase_client import load_schema

    console.print(Syntax(load_schema(), "sql"))


@cli.command()
@click.argument("external_id")
def chart(external_id):
    """Show this week's prices and chart link for a user."""
    from turnip_tracker.services.chart import chart_slots, encode_chart
    from turnip_tracker.services.price_store import open_store

    config = get_config()
    now = datetime.now(ZoneInfo(config.timezone))

    try:
        with open_store(config) as store:
            user = store.get_user(external_id)
            week = store.get_week(user.id, now)
            observations = store.list_observations(week.id)
    except NotFound as e:
        console.print(f"[yellow]⚠️ {e}[/yellow]")
        return
    except StoreUnavailable as e:
        console.print(f"[red]❌ {e}[/red]")
        return

    slots = chart_slots(week.base_price, observations)
    table = Table(title=f"{user.display_name} - week of {week.week_start}")
    table.add_column("Slot")
    table.add_column("AM", justify="right")
    table.add_column("PM", justify="right")
    table.add_row("Sunday", str(slots[0]), "")
    for i, day in enumerate(["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]):
        table.add_row(day, str(slots[2 * i + 1]), str(slots[2 * i + 2]))
    console.print(table)
    console.print(encode_chart(week.base_price, observations, base_url=config.chart_base_url))


@cli.command()
def telegram():
    """Start the Telegram bot (polling mode)."""
    from turnip_tracker.integrations.telegram_bot import run_polling

    config = get_config()
    missing = config.validate()
    if missing:
        console.print(f"[red]❌ Missing config: {', '.join(missing)}[/red]")
        return

    console.print(Panel.fit(
        "Starting Turnip Tracker Telegram bot...\n"
        "Press Ctrl+C to stop.",
        title="🥬 Turnip Tracker Bot",
    ))

    run_polling(config)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
