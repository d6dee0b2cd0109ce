"""Terminal rendering and user-facing (Indonesian) messages."""

from datetime import datetime
from typing import Optional

from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]

from timesheet_ai.core.errors import (
    AuthenticationFailure,
    NotAuthenticated,
    PersistenceFailure,
    SummarizerError,
    TimesheetError,
    ValidationFailure,
)
from timesheet_ai.core.models import TimesheetEntry
from timesheet_ai.core.projector import duration, format_minutes, task_lines, total_minutes

WEEKDAYS = ["Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu", "Minggu"]
MONTHS = [
    "Januari",
    "Februari",
    "Maret",
    "April",
    "Mei",
    "Juni",
    "Juli",
    "Agustus",
    "September",
    "Oktober",
    "November",
    "Desember",
]

VALIDATION_MESSAGES = {
    "blank_task": "Deskripsi pencapaian tidak boleh kosong.",
    "end_before_start": "Waktu selesai harus setelah waktu mulai.",
    "bad_date": "Format tanggal tidak valid. Gunakan YYYY-MM-DD.",
    "bad_time": "Format waktu tidak valid. Gunakan HH:MM.",
    "missing_range": "Silakan pilih rentang tanggal.",
    "inverted_range": "Tanggal mulai tidak boleh setelah tanggal selesai.",
    "empty_range": "Tidak ada data pada rentang tanggal yang dipilih.",
}

NOT_AUTHENTICATED = "Anda belum masuk. Jalankan 'timesheet login' terlebih dahulu."
LOGIN_FAILED = "Email atau kata sandi salah. Silakan coba lagi."
REPORT_FAILED = "Gagal membuat laporan. Silakan coba lagi."

PERSISTENCE_MESSAGES = {
    "add": "Gagal menyimpan catatan. Silakan coba lagi.",
    "edit": "Gagal menyimpan catatan. Silakan coba lagi.",
    "delete": "Gagal menghapus catatan. Silakan coba lagi.",
}


def describe_error(error: TimesheetError, action: str = "") -> str:
    """Translate a failure into the message shown to the user.

    Args:
        error: Failure raised by the core, a backend or the summarizer
        action: CLI action in progress (``add``, ``edit``, ``delete``, ...)
    """
    if isinstance(error, ValidationFailure):
        return VALIDATION_MESSAGES.get(error.code, str(error))
    if isinstance(error, NotAuthenticated):
        return NOT_AUTHENTICATED
    if isinstance(error, AuthenticationFailure):
        return LOGIN_FAILED
    if isinstance(error, SummarizerError):
        return REPORT_FAILED
    if isinstance(error, PersistenceFailure):
        return PERSISTENCE_MESSAGES.get(action, "Gagal menghubungi server. Silakan coba lagi.")
    return str(error)


def format_date(value: str) -> str:
    """Format an ISO date the way the history list shows it.

    Example:
        >>> format_date("2025-11-17")
        'Senin, 17 November'
    """
    day = datetime.strptime(value, "%Y-%m-%d")
    return f"{WEEKDAYS[day.weekday()]}, {day.day} {MONTHS[day.month - 1]}"


def format_task(task: str) -> str:
    """Render multi-line tasks as bullets; single lines are kept as is."""
    lines = task_lines(task)
    if len(lines) > 1:
        return "\n".join(f"• {line}" for line in lines)
    return task


def entries_table(entries: list[TimesheetEntry], title: Optional[str] = None) -> Table:
    """Build the history table for a list of entries."""
    table = Table(title=title or f"Riwayat Kinerja ({len(entries)} catatan)")
    table.add_column("Tanggal", style="cyan", no_wrap=True)
    table.add_column("Pencapaian", style="bold")
    table.add_column("Waktu", style="dim", no_wrap=True)
    table.add_column("Durasi", style="magenta", no_wrap=True)
    table.add_column("ID", style="dim")

    for entry in entries:
        table.add_row(
            format_date(entry.date),
            format_task(entry.task),
            f"{entry.start_time} - {entry.end_time}",
            duration(entry.start_time, entry.end_time),
            entry.id,
        )

    return table


def print_entries(console: Console, entries: list[TimesheetEntry], title: Optional[str] = None) -> None:
    """Print the history table, or the empty-state hint."""
    if not entries:
        console.print("[yellow]Belum ada catatan[/yellow]")
        console.print("Mulai tambahkan rangkuman harianmu: [cyan]timesheet add \"...\"[/cyan]")
        return

    console.print(entries_table(entries, title))
    console.print(f"[dim]Total:[/dim] {format_minutes(total_minutes(entries))}")
