"""Pulse Engine CLI - Main Entry Point"""

import typer
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .client.endpoints import PulseClient
from .commands import config, jobs, notifications
from .utils.config_manager import config as config_manager
from .utils.formatting import create_loops_table, print_error, print_info

console = Console()

app = typer.Typer(
    name="pulse-cli",
    help="⚡ Pulse Engine - scheduled jobs and notifications CLI",
    rich_markup_mode="rich",
)

app.add_typer(jobs.app, name="jobs")
app.add_typer(notifications.app, name="notifications")
app.add_typer(config.app, name="config")


@app.command()
def status():
    """📊 Check engine status and connectivity"""
    base_url = config_manager.get("api.base_url")
    print_info(f"Checking connection to: {base_url}")

    try:
        with PulseClient(base_url) as client:
            health = client.health_check()
    except Exception as e:
        print_error(f"Failed to connect: {e}")
        console.print(
            Panel(
                f"🚫 [red]Connection Failed[/red]\n\n"
                f"Make sure the Pulse engine is running at:\n"
                f"[blue]{base_url}[/blue]\n\n"
                f"You can update the API URL with:\n"
                f"[cyan]pulse-cli config set api.base_url <url>[/cyan]",
                title="Connection Error",
                border_style="red",
            )
        )
        raise typer.Exit(1) from None

    engine = health.get("engine") or {}
    console.print(
        Panel(
            f"🚀 [green]Connected Successfully![/green]\n\n"
            f"• Version: [cyan]{health.get('version', 'unknown')}[/cyan]\n"
            f"• Environment: [yellow]{health.get('environment', 'unknown')}[/yellow]\n"
            f"• Engine running: [magenta]{engine.get('running', False)}[/magenta]\n"
            f"• API URL: [blue]{base_url}[/blue]",
            title="System Status",
            border_style="green",
        )
    )
    if engine.get("loops"):
        console.print(create_loops_table(engine["loops"]))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-v", help="Show version and exit"),
):
    """
    ⚡ Pulse Engine CLI

    Schedule jobs, inspect the engine's loops and pull notifications.
    """
    if version:
        console.print(f"Pulse Engine CLI v{__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
