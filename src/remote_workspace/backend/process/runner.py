"""Shell command execution.

Two ways to run a command line inside the workspace:
- run_command(): run to completion, capture stdout/stderr/exit code
- launch_background(): start detached, hand back the pid, forget about it
"""

import asyncio
import logging
import os
import signal
import subprocess
import threading
from pathlib import Path
from typing import Union

from ..exception import ProcessSpawnError
from ..schema.task import CommandResult

logger = logging.getLogger(__name__)


async def run_command(command: str, cwd: Path) -> CommandResult:
    """Run a command line through the shell and wait for it to exit

    A non-zero exit status (including "command not found" reported by the
    shell) is a normal result. Only a failure to launch the shell raises.

    The command runs in its own process group; if the caller is cancelled
    (its connection went away) the whole group is killed.

    Args:
        command: Shell command line
        cwd: Working directory (already guarded)

    Returns:
        CommandResult with decoded output and the exit code
        (negative when the process was killed by a signal)

    Raises:
        ProcessSpawnError: If the shell could not be started
    """
    logger.debug(f"Running command: {command!r} in {cwd}")

    try:
        process = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        logger.error(f"Failed to start command {command!r}: {e}")
        raise ProcessSpawnError(f"Failed to start command: {e}") from e

    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        _kill_group(process)
        await process.wait()
        logger.info(f"Command cancelled: {command!r}")
        raise

    logger.debug(f"Command finished: {command!r}, exit_code={process.returncode}")

    return CommandResult(
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        exit_code=process.returncode,
    )


def _kill_group(process) -> None:
    if process.returncode is not None:
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def launch_background(command: str, cwd: Path) -> int:
    """Start a detached command and return its pid immediately

    The child gets its own session and no stdio. Nothing about it is
    tracked afterwards; a daemon thread only reaps it so it does not
    linger as a zombie.

    Raises:
        ProcessSpawnError: If the shell could not be started
    """
    try:
        process = subprocess.Popen(
            command,
            shell=True,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        logger.error(f"Failed to launch background command {command!r}: {e}")
        raise ProcessSpawnError(f"Failed to start command: {e}") from e

    threading.Thread(
        target=process.wait,
        name=f"reap-{process.pid}",
        daemon=True,
    ).start()

    logger.info(f"Background task started: pid={process.pid}, command={command!r}")
    return process.pid


async def run_task(command: str, cwd: Path, background: bool = False) -> Union[int, CommandResult]:
    """Run a task in the foreground (CommandResult) or background (pid)"""
    if background:
        return launch_background(command, cwd)
    return await run_command(command, cwd)
