"""Start command implementation"""

import os

import click
from pydantic import ValidationError
from rich.console import Console

from ...backend.config import get_settings
from ..util import get_state_path, is_running

console = Console()


@click.command(name="start", help="Start the workspace daemon in the foreground")
@click.option("--host", default=None, help="Bind address (default: 127.0.0.1)")
@click.option("--port", "-p", type=int, default=None, help="Port (default: 37507)")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Workspace root (default: current directory)",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="TOML config file",
)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="PID file and logs directory (default: ~/.remote-workspace)",
)
def start(
    host: str | None = None,
    port: int | None = None,
    workspace: str | None = None,
    config_file: str | None = None,
    state_dir: str | None = None,
):
    """Start the workspace daemon

    Command line options win over environment variables, which win over the
    TOML config file.
    """
    if config_file:
        os.environ["REMOTE_WORKSPACE_CONFIG"] = config_file

    try:
        settings = get_settings(
            host=host,
            port=port,
            workspace_root=workspace,
            state_dir=get_state_path(state_dir) if state_dir else None,
        )
    except ValidationError as e:
        console.print(f"[red]Error loading settings: {e}[/red]")
        raise click.Abort()

    state_path = settings.state_dir

    # Check if already running
    if is_running(state_path):
        console.print("[red]Error: Daemon already running[/red]")
        console.print(f"[yellow]PID file: {settings.pid_file}[/yellow]")
        raise click.Abort()

    # Display startup info
    console.print(f"[cyan]Workspace: {settings.workspace_root}[/cyan]")
    console.print(f"[cyan]Server: http://{settings.host}:{settings.port}[/cyan]")
    console.print(f"[cyan]WebSocket: ws://{settings.host}:{settings.port}/ws[/cyan]")
    console.print("")

    # Start server in foreground
    import uvicorn
    from ...backend.app import create_app
    from ...backend.logging import setup_logging

    setup_logging(
        settings.logs_dir if settings.log_to_file else None,
        settings.log_level,
    )

    app = create_app(settings)

    # Save PID (current process)
    state_path.mkdir(parents=True, exist_ok=True)
    pid_file = settings.pid_file
    pid_file.write_text(str(os.getpid()))

    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
        )
    finally:
        # Clean up PID file when server stops
        pid_file.unlink(missing_ok=True)
