"""Main CLI application."""

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, Coroutine, Optional

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel

from timesheet_ai import __version__
from timesheet_ai.analysis.report import generate_report
from timesheet_ai.analysis.summarizer import GeminiSummarizer
from timesheet_ai.backends import create_backends
from timesheet_ai.cli.config_commands import config
from timesheet_ai.cli.display import describe_error, print_entries
from timesheet_ai.core.config import ConfigManager
from timesheet_ai.core.errors import TimesheetError
from timesheet_ai.core.models import EntryDraft
from timesheet_ai.core.projector import (
    ALL_MONTHS,
    available_years,
    earliest_date,
    filter_by_period,
)
from timesheet_ai.core.store import EntryStore
from timesheet_ai.core.validation import validate_draft

console = Console()
error_console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(config: ConfigManager, verbose: bool = False) -> None:
    """Configure the package logger from the ``advanced`` config section.

    Logs go to ``advanced.log_file`` when set; ``verbose`` adds a stderr
    handler at DEBUG level.
    """
    log_level = getattr(logging, config.get("advanced.log_level", "INFO"))
    package_logger = logging.getLogger("timesheet_ai")
    package_logger.setLevel(logging.DEBUG if verbose else log_level)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    log_file = config.get("advanced.log_file")
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    if verbose:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    if not package_logger.handlers:
        package_logger.addHandler(logging.NullHandler())


def get_config(ctx: click.Context) -> ConfigManager:
    """Get the configuration for this invocation, with command-line overrides."""
    try:
        config_mgr = ConfigManager(ctx.obj.get("config_path"))
        if ctx.obj.get("data_dir"):
            config_mgr.set("general.data_dir", ctx.obj["data_dir"], persist=False)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    return config_mgr


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run a command coroutine to completion."""
    return asyncio.run(coro)


def fail(error: TimesheetError, action: str = "") -> None:
    """Print a failure the way users see it and exit with status 1."""
    error_console.print(f"[red]Error:[/red] {describe_error(error, action)}")
    sys.exit(1)


@asynccontextmanager
async def open_store(config_mgr: ConfigManager) -> AsyncIterator[EntryStore]:
    """Open the backends and yield a store loaded for the stored session.

    The initial load goes through the store's session listener, the same
    path that reloads on sign-in and sign-out.
    """
    try:
        auth, backend = create_backends(config_mgr)
    except ValueError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    store = EntryStore(auth, backend)
    store.attach()
    try:
        await auth.start()
        yield store
    finally:
        store.detach()
        await backend.close()


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", help="Path to config file", type=click.Path())
@click.option("--data-dir", help="Custom data directory (CSV backend)", type=click.Path())
@click.option("-v", "--verbose", is_flag=True, help="Log to stderr")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Optional[str],
    data_dir: Optional[str],
    verbose: bool,
    no_color: bool,
) -> None:
    """Timesheet AI - daily achievement timesheet.

    Record what you achieved each day, browse your history, and let AI
    summarize a period into key points.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["data_dir"] = data_dir

    if no_color:
        console.no_color = True

    setup_logging(get_config(ctx), verbose)


cli.add_command(config)


# Session


@cli.command()
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx: click.Context, email: str, password: str) -> None:
    """Sign in.

    Example:
        timesheet login me@example.com
    """

    async def _login() -> None:
        async with open_store(get_config(ctx)) as store:
            try:
                identity = await store.auth.sign_in(email, password)
            except TimesheetError as e:
                fail(e, "login")
            console.print(f"[green]✓[/green] Berhasil masuk sebagai {identity.email or email}")
            console.print(f"  {len(store.entries)} catatan dimuat")

    run(_login())


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Sign out."""

    async def _logout() -> None:
        async with open_store(get_config(ctx)) as store:
            await store.auth.sign_out()
            console.print("[green]✓[/green] Berhasil keluar")

    run(_logout())


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the signed-in user."""

    async def _whoami() -> None:
        async with open_store(get_config(ctx)) as store:
            identity = await store.auth.current_identity()
            if identity is None:
                console.print("[yellow]Belum masuk[/yellow]")
                return
            console.print(f"{identity.email or '-'} ({identity.user_id})")

    run(_whoami())


# Entries


@cli.command()
@click.argument("task", nargs=-1, required=True)
@click.option("-d", "--date", "entry_date", help="Date (YYYY-MM-DD). Defaults to today")
@click.option("-s", "--start", help="Start time (HH:MM)")
@click.option("-e", "--end", help="End time (HH:MM)")
@click.pass_context
def add(
    ctx: click.Context,
    task: tuple[str, ...],
    entry_date: Optional[str],
    start: Optional[str],
    end: Optional[str],
) -> None:
    """Add a timesheet entry.

    Each TASK argument becomes one achievement line.

    Example:
        timesheet add "Finished payment API integration" "Wrote tests"
        timesheet add "Sprint planning" -d 2025-11-17 -s 09:00 -e 10:30
    """
    config_mgr = get_config(ctx)
    draft = EntryDraft(
        date=entry_date or date.today().isoformat(),
        task="\n".join(task),
        start_time=start or config_mgr.get("display.default_start_time", "08:30"),
        end_time=end or config_mgr.get("display.default_end_time", "17:00"),
    )

    try:
        validate_draft(draft)
    except TimesheetError as e:
        fail(e, "add")

    async def _add() -> None:
        async with open_store(config_mgr) as store:
            try:
                entry = await store.create(draft)
            except TimesheetError as e:
                fail(e, "add")
            console.print(f"[green]✓[/green] Catatan ditambahkan ({entry.id})")
            console.print(f"  {entry.date}  {entry.start_time} - {entry.end_time}")

    run(_add())


@cli.command()
@click.argument("entry_id")
@click.option("-t", "--task", multiple=True, help="New achievement line (repeatable)")
@click.option("-d", "--date", "entry_date", help="New date (YYYY-MM-DD)")
@click.option("-s", "--start", help="New start time (HH:MM)")
@click.option("-e", "--end", help="New end time (HH:MM)")
@click.pass_context
def edit(
    ctx: click.Context,
    entry_id: str,
    task: tuple[str, ...],
    entry_date: Optional[str],
    start: Optional[str],
    end: Optional[str],
) -> None:
    """Edit an entry. Options not given keep their current value.

    Example:
        timesheet edit 3f2a... -e 18:00
    """

    async def _edit() -> None:
        async with open_store(get_config(ctx)) as store:
            current = store.get(entry_id)
            if current is None:
                error_console.print(f"[red]Error:[/red] Catatan tidak ditemukan: {entry_id}")
                sys.exit(1)

            patch = EntryDraft(
                date=entry_date or current.date,
                task="\n".join(task) if task else current.task,
                start_time=start or current.start_time,
                end_time=end or current.end_time,
            )
            try:
                validate_draft(patch)
                await store.update(entry_id, patch)
            except TimesheetError as e:
                fail(e, "edit")
            console.print(f"[green]✓[/green] Perubahan disimpan ({entry_id})")

    run(_edit())


@cli.command()
@click.argument("entry_id")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def delete(ctx: click.Context, entry_id: str, yes: bool) -> None:
    """Delete an entry.

    Example:
        timesheet delete 3f2a... --yes
    """

    async def _delete() -> None:
        async with open_store(get_config(ctx)) as store:
            if store.get(entry_id) is None:
                error_console.print(f"[red]Error:[/red] Catatan tidak ditemukan: {entry_id}")
                sys.exit(1)
            if not yes and not click.confirm("Hapus catatan ini? Tindakan ini tidak dapat dibatalkan."):
                console.print("Dibatalkan")
                return
            try:
                await store.remove(entry_id)
            except TimesheetError as e:
                fail(e, "delete")
            console.print("[green]✓[/green] Catatan dihapus")

    run(_delete())


@cli.command("list")
@click.option("-y", "--year", type=int, help="Year. Defaults to the most recent year with entries")
@click.option(
    "-m",
    "--month",
    default=ALL_MONTHS,
    help="Month 1-12, or 'all'",
    show_default=True,
)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_entries(ctx: click.Context, year: Optional[int], month: str, as_json: bool) -> None:
    """List entries of a year, optionally one month.

    Example:
        timesheet list
        timesheet list -y 2025 -m 11
    """
    if month != ALL_MONTHS and (not month.isdigit() or not 1 <= int(month) <= 12):
        error_console.print("[red]Error:[/red] Bulan harus 1-12 atau 'all'")
        sys.exit(1)

    async def _list() -> None:
        async with open_store(get_config(ctx)) as store:
            selected_year = year or available_years(store.entries)[0]
            selected = filter_by_period(
                store.entries, selected_year, month if month == ALL_MONTHS else int(month)
            )

            if as_json:
                print(json.dumps([entry.to_dict() for entry in selected], indent=2))
                return

            period = str(selected_year) if month == ALL_MONTHS else f"{int(month):02d}/{selected_year}"
            print_entries(console, selected, f"Riwayat Kinerja {period} ({len(selected)} catatan)")

    run(_list())


@cli.command()
@click.pass_context
def years(ctx: click.Context) -> None:
    """Show the years that have entries."""

    async def _years() -> None:
        async with open_store(get_config(ctx)) as store:
            for value in available_years(store.entries):
                console.print(str(value))

    run(_years())


# Report


@cli.command()
@click.option("--from", "from_date", help="Start date (YYYY-MM-DD). Defaults to the first entry")
@click.option("--to", "to_date", help="End date (YYYY-MM-DD). Defaults to today")
@click.option("-i", "--instructions", help="Custom instructions for the AI")
@click.option("-o", "--output", type=click.Path(), help="Also write the report to a file")
@click.pass_context
def report(
    ctx: click.Context,
    from_date: Optional[str],
    to_date: Optional[str],
    instructions: Optional[str],
    output: Optional[str],
) -> None:
    """Generate an AI summary of achievements in a date range.

    Example:
        timesheet report --from 2025-11-01 --to 2025-11-30
    """
    config_mgr = get_config(ctx)
    api_key = config_mgr.summarizer_api_key()
    if not api_key:
        error_console.print(
            "[red]Error:[/red] Gemini API key is not set "
            f"(summarizer.api_key or ${config_mgr.get('summarizer.api_key_env')})"
        )
        sys.exit(1)

    async def _report() -> None:
        summarizer = GeminiSummarizer(
            api_key,
            model=config_mgr.get("summarizer.model", "gemini-2.5-flash"),
            temperature=float(config_mgr.get("summarizer.temperature", 0.3)),
            timeout=float(config_mgr.get("summarizer.timeout", 60)),
        )
        try:
            async with open_store(config_mgr) as store:
                start = from_date or earliest_date(store.entries) or date.today().isoformat()
                end = to_date or date.today().isoformat()
                with console.status("AI sedang merangkum kontribusimu..."):
                    try:
                        text = await generate_report(
                            store.entries, start, end, summarizer, instructions
                        )
                    except TimesheetError as e:
                        fail(e, "report")
        finally:
            await summarizer.close()

        console.print(Panel(Markdown(text), title=f"Hasil Analisis AI ({start} - {end})"))
        if output:
            Path(output).write_text(text, encoding="utf-8")
            console.print(f"[green]✓[/green] Laporan disimpan ke {output}")

    run(_report())


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
