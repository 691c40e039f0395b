"""CLI commands for attendance operations."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table
import rich.box

from zkteco_sync.zk.pool import DEFAULT_DEVICE_KEY

app = typer.Typer(
    name="attendance",
    help="Attendance record operations",
    add_completion=False,
)

console = Console()


def _parse_range(date_from: Optional[str], date_to: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    try:
        dt_from = datetime.strptime(date_from, "%Y-%m-%d") if date_from else None
        dt_to = (
            datetime.strptime(date_to, "%Y-%m-%d").replace(hour=23, minute=59, second=59)
            if date_to
            else None
        )
    except ValueError as e:
        raise typer.BadParameter(f"Dates must be YYYY-MM-DD: {e}") from e
    return dt_from, dt_to


@app.command("list")
def attendance_list(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
    date_from: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
    limit: int = typer.Option(50, "--limit", help="Max records to display"),
):
    """List attendance records from a device."""
    from zkteco_sync.core.attendance import get_attendance

    dt_from, dt_to = _parse_range(date_from, date_to)
    records = get_attendance(device, dt_from, dt_to)

    table = Table(
        title=f"Attendance - {device} ({len(records)} records)",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("User ID", style="cyan")
    table.add_column("Timestamp", style="green")
    table.add_column("Status")
    table.add_column("Punch", justify="right")

    for r in records[:limit]:
        table.add_row(
            r.user_id,
            r.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            r.status_label,
            str(r.punch),
        )

    if len(records) > limit:
        table.add_row("...", f"({len(records) - limit} more)", "", "")

    console.print(table)


@app.command("count")
def attendance_count(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
):
    """Count attendance records on a device."""
    from zkteco_sync.core.attendance import count_attendance

    count = count_attendance(device)
    console.print(f"Attendance records on {device}: [bold cyan]{count}[/bold cyan]")


@app.command("export")
def attendance_export(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
    date_from: Optional[str] = typer.Option(None, "--from", help="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = typer.Option(None, "--to", help="End date (YYYY-MM-DD)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (default: <EXPORT_DIR>/attendance_<device>.csv)"),
    as_json: bool = typer.Option(False, "--json", help="Write JSON instead of CSV"),
):
    """Export attendance records to CSV or JSON."""
    from zkteco_sync.config import get_settings
    from zkteco_sync.core.attendance import get_attendance
    from zkteco_sync.core.export import export_attendance_csv, export_json

    dt_from, dt_to = _parse_range(date_from, date_to)
    records = get_attendance(device, dt_from, dt_to)
    suffix = "json" if as_json else "csv"
    path = output or Path(get_settings().EXPORT_DIR) / f"attendance_{device}.{suffix}"
    path.parent.mkdir(parents=True, exist_ok=True)

    if as_json:
        export_json(records, path)
    else:
        export_attendance_csv(records, path)
    console.print(f"[green]Exported {len(records)} attendance records to {path}[/green]")
