"""Stop command implementation"""

import os
import signal
import time

import click
from pydantic import ValidationError
from rich.console import Console

from ...backend.config import get_settings
from ..util import get_pid_file, get_state_path, is_alive, is_running, read_pid

console = Console()

# Seconds to wait for a graceful shutdown
STOP_TIMEOUT = 10


@click.command(name="stop", help="Stop the workspace daemon")
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
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Force kill if graceful shutdown fails",
)
def stop(
    config_file: str | None = None,
    state_dir: str | None = None,
    force: bool = False,
):
    """Stop the workspace daemon

    1. Send SIGTERM for graceful shutdown (terminals are killed on the way out)
    2. Wait up to 10 seconds
    3. If still running and --force, send SIGKILL
    4. Clean up PID file

    The state directory is resolved like `start` resolves it, so one set in
    the environment or the TOML config is found here too.
    """
    if config_file:
        os.environ["REMOTE_WORKSPACE_CONFIG"] = config_file

    try:
        settings = get_settings(
            state_dir=get_state_path(state_dir) if state_dir else None,
        )
    except ValidationError as e:
        console.print(f"[red]Error loading settings: {e}[/red]")
        raise click.Abort()

    state_path = settings.state_dir

    # Check if running
    if not is_running(state_path):
        console.print(f"[yellow]Daemon not running (state dir: {state_path})[/yellow]")
        return

    pid = read_pid(state_path)
    console.print(f"[cyan]Stopping daemon (PID {pid})...[/cyan]")

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        pass

    deadline = time.monotonic() + STOP_TIMEOUT
    while time.monotonic() < deadline and is_alive(pid):
        time.sleep(0.2)

    if is_alive(pid):
        if not force:
            console.print(
                f"[red]Daemon did not stop within {STOP_TIMEOUT}s[/red]"
            )
            console.print("[yellow]Run again with --force to kill it[/yellow]")
            raise click.Abort()

        console.print("[yellow]Graceful shutdown timed out, sending SIGKILL[/yellow]")
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    get_pid_file(state_path).unlink(missing_ok=True)
    console.print("[green]Daemon stopped[/green]")
