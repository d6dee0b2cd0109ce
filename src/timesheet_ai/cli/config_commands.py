"""``timesheet config`` subcommands."""

import functools
import json
import shutil
import sys
from typing import Any, Callable

import click  # type: ignore[import-not-found]
from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from timesheet_ai.core.config import ConfigManager

console = Console()
error_console = Console(stderr=True)

SECRET_KEYS = {"backend.supabase.anon_key", "summarizer.api_key"}


def pass_config(command: Callable[..., Any]) -> Callable[..., Any]:
    """Call ``command`` with the ConfigManager for the root ``--config`` path."""

    @click.pass_context
    @functools.wraps(command)
    def wrapper(ctx: click.Context, *args: Any, **kwargs: Any) -> Any:
        obj = ctx.find_root().obj or {}
        try:
            config_mgr = ConfigManager(obj.get("config_path"))
        except ValueError as e:
            error_console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        return command(config_mgr, *args, **kwargs)

    return wrapper


def masked(key: str, value: Any) -> Any:
    """Hide secret values for display."""
    return "****" if key in SECRET_KEYS and value else value


def convert_value(value: str) -> Any:
    """Convert a command-line string to a bool, null, int, float or string."""
    lowered = value.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    if lowered == "null":
        return None
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


@click.group()  # type: ignore[misc]
def config() -> None:
    """View and change settings (~/.timesheet-ai/config.yml)."""


@config.command("show")  # type: ignore[misc]
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")  # type: ignore[misc]
@pass_config
def config_show(config_mgr: ConfigManager, as_json: bool) -> None:
    """Show every setting, secrets masked.

    Example:
        timesheet config show --json
    """
    values = {key: masked(key, config_mgr.get(key)) for key in config_mgr.get_all_keys()}

    if as_json:
        print(json.dumps(values, indent=2))
        return

    table = Table(title=str(config_mgr.config_path))
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in values.items():
        table.add_row(key, "[dim]-[/dim]" if value is None else str(value))
    console.print(table)


@config.command("get")  # type: ignore[misc]
@click.argument("key")  # type: ignore[misc]
@pass_config
def config_get(config_mgr: ConfigManager, key: str) -> None:
    """Print one setting.

    Example:
        timesheet config get backend.type
    """
    value = config_mgr.get(key)
    if value is None:
        error_console.print(f"[red]Error:[/red] '{key}' is not set")
        sys.exit(1)
    console.print(json.dumps(value, indent=2) if isinstance(value, dict) else str(value))


@config.command("set")  # type: ignore[misc]
@click.argument("key")  # type: ignore[misc]
@click.argument("value")  # type: ignore[misc]
@pass_config
def config_set(config_mgr: ConfigManager, key: str, value: str) -> None:
    """Change one setting. 'true'/'false' give booleans, 'null' clears.

    Example:
        timesheet config set backend.supabase.url https://xyz.supabase.co
    """
    converted = convert_value(value)
    try:
        config_mgr.set(key, converted)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] {key} = {masked(key, converted)}")


@config.command("reset")  # type: ignore[misc]
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")  # type: ignore[misc]
@pass_config
def config_reset(config_mgr: ConfigManager, yes: bool) -> None:
    """Restore the default settings, keeping a copy of the current file."""
    if not yes and not click.confirm("Reset all settings to defaults?"):
        console.print("Cancelled")
        return

    backup_path = config_mgr.config_path.with_suffix(".yml.backup")
    shutil.copy(config_mgr.config_path, backup_path)
    config_mgr.reset()
    console.print(f"[green]✓[/green] Defaults restored (previous settings in {backup_path})")


@config.command("path")  # type: ignore[misc]
@pass_config
def config_path(config_mgr: ConfigManager) -> None:
    """Print the config file location."""
    console.print(str(config_mgr.config_path))
