"""Main CLI application entry point."""
from __future__ import annotations

import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
import rich.box

from zkteco_sync.cli import attendance, device, sync, user
from zkteco_sync.config import get_settings
from zkteco_sync.utils.logging import setup_logging

# Initialize Typer app
app = typer.Typer(
    name="zkteco-ctl",
    help="ZKTeco attendance terminal extraction and sync",
    add_completion=False,
)

console = Console()

# Include sub-apps
app.add_typer(device.app)
app.add_typer(attendance.app)
app.add_typer(user.app)
app.command("extract")(sync.extract)
app.command("sync")(sync.sync)


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default: LOG_LEVEL)"),
    password: Optional[List[int]] = typer.Option(
        None,
        "--password",
        "-p",
        help="Comm password to try; repeat to try several in order",
    ),
):
    """ZKTeco attendance terminal CLI."""
    setup_logging(log_level or get_settings().LOG_LEVEL)
    if password:
        from zkteco_sync.zk.pool import get_pool

        get_pool().use_passwords(password)


# ---------------------------------------------------------------------------
# Serve command (FastAPI + scheduler)
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind host"),
    port: int = typer.Option(None, "--port", help="Bind port"),
):
    """Start the REST API server."""
    import uvicorn

    from zkteco_sync.api.app import create_app

    settings = get_settings()
    bind_host = host or settings.API_HOST
    bind_port = port or settings.API_PORT

    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info("ZKTECO-CTL SERVE MODE")
    logger.info("=" * 60)
    logger.info("Environment: %s", settings.ENVIRONMENT.upper())
    logger.info("API: http://%s:%d", bind_host, bind_port)
    logger.info("Docs: http://%s:%d/docs", bind_host, bind_port)
    logger.info("Scheduler: %s", "enabled" if settings.SCHEDULER_ENABLED else "disabled")
    logger.info("=" * 60)

    api_app = create_app()
    uvicorn.run(api_app, host=bind_host, port=bind_port, log_level="info")


# ---------------------------------------------------------------------------
# Status command
# ---------------------------------------------------------------------------


@app.command()
def status():
    """Show current configuration and status."""
    from zkteco_sync.zk.pool import get_pool

    settings = get_settings()

    table = Table(
        title="ZKTeco Sync Configuration",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
    )
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    rows = [
        ("Environment", settings.ENVIRONMENT),
        ("Machines Config", settings.ZK_MACHINES_CONFIG),
        ("Devices", ", ".join(get_pool().device_keys())),
        ("Default Transport", settings.ZK_TRANSPORT),
        ("Default Profile", settings.ZK_PROFILE),
        ("Database", settings.DATABASE_URL),
        ("Export Dir", settings.EXPORT_DIR),
        ("Device Info Cache", f"{settings.CACHE_DEVICE_INFO_MINUTES} min" if settings.CACHE_ENABLED else "disabled"),
        ("Scheduler", f"every {settings.SYNC_INTERVAL_MINUTES} min" if settings.SCHEDULER_ENABLED else "disabled"),
        ("API Host", f"{settings.API_HOST}:{settings.API_PORT}"),
        ("Log Level", settings.LOG_LEVEL),
    ]

    for label, value in rows:
        table.add_row(label, str(value))

    console.print(table)


# ---------------------------------------------------------------------------
# List command
# ---------------------------------------------------------------------------


@app.command("list")
def list_commands():
    """List all available commands."""
    table = Table(
        title="Available Commands",
        show_header=True,
        header_style="bold magenta",
        box=rich.box.ROUNDED,
        expand=True,
        show_lines=True,
    )
    table.add_column("Command", style="cyan", width=40)
    table.add_column("Description", style="green", width=50)

    commands = [
        ("serve", "Start the REST API server"),
        ("status", "Show configuration"),
        ("extract [key]", "Extract everything and export CSV/JSON/summary"),
        ("sync [key]", "Extract and upsert into the database"),
        ("device list", "List all devices with status"),
        ("device info [key]", "Show detailed device info"),
        ("device ping [key]", "Check a device session opens"),
        ("attendance list [key]", "List attendance records"),
        ("attendance count [key]", "Count attendance records"),
        ("attendance export [key]", "Export attendance to CSV/JSON"),
        ("user list [key]", "List users on device"),
        ("user get <id>", "Get specific user"),
        ("user export [key]", "Export users to CSV/JSON"),
    ]

    for cmd, desc in commands:
        table.add_row(cmd, desc)

    console.print("\n")
    console.print(table)
    console.print("\n")


if __name__ == "__main__":
    app()
