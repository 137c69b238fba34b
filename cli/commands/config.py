"""Configuration Commands - CLI settings management"""

import typer
import yaml
from rich.console import Console
from rich.panel import Panel

from ..utils.config_manager import config
from ..utils.formatting import print_error, print_info, print_success

console = Console()
app = typer.Typer(name="config", help="CLI configuration management")


@app.command("set")
def set_config(
    key: str = typer.Argument(..., help="Configuration key (e.g., 'api.base_url')"),
    value: str = typer.Argument(..., help="Configuration value"),
):
    """⚙️ Set a configuration value"""
    if key == "api.base_url" and not value.startswith(("http://", "https://")):
        print_error("API base URL must start with http:// or https://")
        raise typer.Exit(1)

    if key.endswith(".timeout") and not value.isdigit():
        print_error("Timeout values must be numeric (seconds)")
        raise typer.Exit(1)

    try:
        config.set(key, int(value) if value.isdigit() else value)
    except OSError as e:
        print_error(f"Failed to set configuration: {e}")
        raise typer.Exit(1) from None

    print_success(f"Set {key} = {value}")
    if key == "api.base_url":
        print_info("Test connection with: pulse-cli status")


@app.command("get")
def get_config(
    key: str = typer.Argument(..., help="Configuration key"),
):
    """📋 Get a configuration value"""
    value = config.get(key)
    if value is None:
        console.print(f"[yellow]Key '{key}' not found[/yellow]")
        raise typer.Exit(1)
    console.print(f"[cyan]{key}[/cyan] = [yellow]{value}[/yellow]")


@app.command("show")
def show_config():
    """📊 Show all configuration settings"""
    console.print(
        Panel(
            yaml.dump(config.load_config(), default_flow_style=False).strip(),
            title=f"Configuration ({config.config_file})",
            border_style="blue",
        )
    )


@app.command("dev-mode")
def setup_dev_mode(
    user_id: str = typer.Argument(..., help="User ID sent as X-User-ID"),
):
    """🔧 Configure dev mode authentication header"""
    try:
        config.set("api.headers.X-User-ID", user_id)
    except OSError as e:
        print_error(f"Failed to configure dev mode: {e}")
        raise typer.Exit(1) from None

    print_success(f"Dev mode configured for user [cyan]{user_id}[/cyan]")
    console.print("💡 [dim]Make sure your server is running with AUTH_MODE=dev.[/dim]")
