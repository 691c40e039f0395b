"""CLI commands for device management."""
from __future__ import annotations

import typer
from rich.console import Console
from rich.table import Table
import rich.box

from zkteco_sync.zk.pool import DEFAULT_DEVICE_KEY

app = typer.Typer(
    name="device",
    help="Device management commands",
    add_completion=False,
)

console = Console()


@app.command("list")
def device_list():
    """List all configured devices with status."""
    from zkteco_sync.core.device_manager import get_all_device_statuses

    statuses = get_all_device_statuses()

    table = Table(
        title="ZKTeco Devices",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Key", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("IP:Port", style="yellow")
    table.add_column("Transport")
    table.add_column("Profile")
    table.add_column("Status", style="bold")
    table.add_column("Users", justify="right")
    table.add_column("Attendance", justify="right")

    for s in statuses:
        status_str = "[green]ONLINE[/green]" if s.online else "[red]OFFLINE[/red]"
        users = str(s.info.user_count) if s.info else "-"
        att = str(s.info.record_count) if s.info else "-"
        table.add_row(
            s.key,
            s.config.name,
            f"{s.config.endpoint.ip}:{s.config.endpoint.port}",
            s.config.endpoint.transport.value,
            s.config.profile,
            status_str,
            users,
            att,
        )

    console.print(table)


@app.command("info")
def device_info(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key from machines.yml"),
):
    """Show detailed device information."""
    from zkteco_sync.core.device_manager import check_device_status

    status = check_device_status(device)

    if not status.online:
        console.print(f"[red]Device {device} is OFFLINE: {status.error}[/red]")
        raise typer.Exit(1)

    info = status.info
    table = Table(
        title=f"Device: {status.config.name}",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Key", status.key)
    table.add_row("IP", f"{status.config.endpoint.ip}:{status.config.endpoint.port}")
    table.add_row("Transport", status.config.endpoint.transport.value)
    if info:
        table.add_row("Platform", info.platform or "N/A")
        table.add_row("Firmware", info.firmware_version or "N/A")
        table.add_row("Serial", info.serial_number or "N/A")
        table.add_row("Device Name", info.device_name or "N/A")
        table.add_row("MAC Address", info.mac_address or "N/A")
        table.add_row("Users", f"{info.user_count} / {info.user_capacity}")
        table.add_row("Fingerprints", f"{info.fp_count} / {info.fp_capacity}")
        table.add_row("Attendance Records", f"{info.record_count} / {info.record_capacity}")
        table.add_row("Cards", str(info.card_count))
        table.add_row("Faces", str(info.face_count))

    console.print(table)


@app.command("ping")
def device_ping(
    device: str = typer.Argument(DEFAULT_DEVICE_KEY, help="Device key"),
):
    """Open and close a session to check connectivity."""
    from zkteco_sync.core.device_manager import test_connection

    if test_connection(device):
        console.print(f"[green]Device {device} is reachable[/green]")
    else:
        console.print(f"[red]Device {device} is unreachable[/red]")
        raise typer.Exit(1)
