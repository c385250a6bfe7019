"""Command execution: foreground runs, detached launches, git helpers."""

from .runner import run_command, launch_background, run_task
from .git import git_status, git_commit

__all__ = ['run_command', 'launch_background', 'run_task', 'git_status', 'git_commit']
