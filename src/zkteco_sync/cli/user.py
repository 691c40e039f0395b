"""CLI commands for users enrolled on devices."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
import rich.box

from zkteco_sync.zk.pool import DEFAULT_DEVICE_KEY

app = typer.Typer(
    name="user",
    help="Users enrolled on ZKTeco devices",
    add_completion=False,
)

console = Console()


@app.command("list")
def user_list(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
):
    """List all users on a device."""
    from zkteco_sync.core.user_sync import get_users

    users = get_users(device)

    table = Table(
        title=f"Users on {device} ({len(users)} total)",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("UID", justify="right", style="cyan")
    table.add_column("User ID", style="green")
    table.add_column("Name")
    table.add_column("Privilege")
    table.add_column("Group")
    table.add_column("Card", justify="right")

    for u in users:
        table.add_row(
            str(u.uid),
            u.user_id,
            u.name,
            u.privilege_label,
            u.group_id,
            str(u.card) if u.card else "",
        )

    console.print(table)


@app.command("get")
def user_get(
    user_id: str = typer.Argument(help="User ID to look up"),
    device: str = typer.Option(DEFAULT_DEVICE_KEY, "--device", "-d", help="Device key"),
):
    """Get a specific user from a device."""
    from zkteco_sync.core.user_sync import get_user

    user = get_user(device, user_id)
    if not user:
        console.print(f"[red]User {user_id} not found on {device}[/red]")
        raise typer.Exit(1)

    table = Table(
        title=f"User {user_id} on {device}",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("UID", str(user.uid))
    table.add_row("User ID", user.user_id)
    table.add_row("Name", user.name)
    table.add_row("Privilege", f"{user.privilege} ({user.privilege_label})")
    table.add_row("Card", str(user.card))
    table.add_row("Group", user.group_id)

    console.print(table)


@app.command("export")
def user_export(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="CSV file (default: <EXPORT_DIR>/users_<device>.csv)"),
    as_json: bool = typer.Option(False, "--json", help="Write JSON instead of CSV"),
):
    """Export users from a device to CSV or JSON."""
    from zkteco_sync.config import get_settings
    from zkteco_sync.core.export import export_json, export_users_csv
    from zkteco_sync.core.user_sync import get_users

    users = get_users(device)
    suffix = "json" if as_json else "csv"
    path = output or Path(get_settings().EXPORT_DIR) / f"users_{device}.{suffix}"
    path.parent.mkdir(parents=True, exist_ok=True)

    if as_json:
        export_json(users, path)
    else:
        export_users_csv(users, path)
    console.print(f"[green]Exported {len(users)} users to {path}[/green]")
