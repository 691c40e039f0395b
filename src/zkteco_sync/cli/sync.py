"""CLI commands for full extraction and database sync."""
from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
import rich.box

from zkteco_sync.zk.pool import DEFAULT_DEVICE_KEY

console = Console()


def extract(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
    export_dir: Optional[str] = typer.Option(None, "--export-dir", help="Output directory (default: EXPORT_DIR)"),
):
    """Extract device info, users and attendance and write CSV/JSON/summary files."""
    from zkteco_sync.core.export import format_summary, summarize
    from zkteco_sync.core.pipeline import run_export

    result, paths = run_export(device, export_dir)

    console.print(format_summary(summarize(result)))
    for path in paths:
        console.print(f"  [green]wrote[/green] {path}")

    if not result.succeeded:
        console.print(f"[yellow]Partial extraction, failed steps: {', '.join(result.failed_steps)}[/yellow]")
        raise typer.Exit(2 if result.partial else 1)


def sync(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
    users_only: bool = typer.Option(False, "--users-only", help="Sync users only"),
    attendance_only: bool = typer.Option(False, "--attendance-only", help="Sync attendance only"),
):
    """Extract from a device and upsert users/attendance into DATABASE_URL."""
    if users_only and attendance_only:
        raise typer.BadParameter("--users-only and --attendance-only are mutually exclusive")

    from zkteco_sync.core.pipeline import run_sync

    result = run_sync(device, users=not attendance_only, attendance=not users_only)

    table = Table(
        title=f"Sync - {device}",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Kind", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Synced", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")

    for kind, counts in result["sync"].items():
        table.add_row(kind, str(counts["total"]), str(counts["synced"]), str(counts["failed"]))

    console.print(table)

    if result["failed_steps"]:
        console.print(f"[yellow]Failed steps: {', '.join(result['failed_steps'])}[/yellow]")
        raise typer.Exit(1)
