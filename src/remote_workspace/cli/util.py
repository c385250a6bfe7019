"""CLI utility functions"""

import os
from pathlib import Path

from ..backend.config import get_state_dir


def get_state_path(path: str | None = None) -> Path:
    """Get state directory, default to ~/.remote-workspace

    Args:
        path: Custom path (relative or absolute), None for default

    Returns:
        Resolved absolute path
    """
    if path is None:
        return get_state_dir()
    return Path(path).expanduser().resolve()


def get_pid_file(state_path: Path) -> Path:
    """Get PID file path

    Args:
        state_path: State directory path

    Returns:
        PID file path
    """
    return state_path / "daemon.pid"


def read_pid(state_path: Path) -> int | None:
    """Read the daemon PID, or None if the PID file is missing or garbled"""
    pid_file = get_pid_file(state_path)
    try:
        return int(pid_file.read_text().strip())
    except (OSError, ValueError):
        return None


def is_alive(pid: int) -> bool:
    """Check whether a process with this PID exists"""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to someone else
        return True
    return True


def is_running(state_path: Path) -> bool:
    """Check if the daemon is running

    A PID file whose process is gone is stale and gets removed.

    Args:
        state_path: State directory path

    Returns:
        True if the PID file points at a live process, False otherwise
    """
    pid = read_pid(state_path)
    if pid is None:
        return False
    if is_alive(pid):
        return True

    get_pid_file(state_path).unlink(missing_ok=True)
    return False
