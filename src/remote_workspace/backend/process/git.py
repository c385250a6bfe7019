"""Git status/commit on top of the command runner"""

import logging
import shlex
from pathlib import Path
from typing import Iterable

from ..exception import InvalidOperationError
from ..workspace.guard import guard
from .runner import run_command

logger = logging.getLogger(__name__)


async def git_status(cwd: Path) -> str:
    """Porcelain status of the repository containing ``cwd``

    Raises:
        InvalidOperationError: If git fails (e.g. not a repository)
    """
    result = await run_command("git status --porcelain", cwd)
    if result.exit_code != 0:
        raise InvalidOperationError(result.stderr.strip() or "git status failed")
    return result.stdout


async def git_commit(root: Path, cwd: Path, message: str, files: Iterable[str] = ()) -> str:
    """Stage ``files`` (if any) and commit with ``message``

    Each file is guarded against the workspace root before git sees it, and
    pathspec magic is disabled so git cannot reach outside either.

    Args:
        root: Workspace root
        cwd: Repository directory (already guarded)
        message: Commit message
        files: Paths relative to ``cwd`` to stage first

    Returns:
        Output of ``git commit``

    Raises:
        AccessDeniedError: If a file escapes the workspace
        InvalidOperationError: If git add or git commit fails
    """
    files = list(files)
    if files:
        for name in files:
            guard(root, str(cwd / name))

        quoted = " ".join(shlex.quote(name) for name in files)
        added = await run_command(f"git --literal-pathspecs add -- {quoted}", cwd)
        if added.exit_code != 0:
            raise InvalidOperationError(added.stderr.strip() or "git add failed")

    result = await run_command(f"git commit -m {shlex.quote(message)}", cwd)
    if result.exit_code != 0:
        raise InvalidOperationError(
            result.stderr.strip() or result.stdout.strip() or "git commit failed"
        )

    logger.info(f"Committed in {cwd}: {message!r} ({len(files)} files staged)")
    return result.stdout
