"""Workspace path containment.

Every client-supplied path goes through :func:`guard` before anything touches
the filesystem or spawns a process. The check is component-wise
(``Path.relative_to``), so ``/workspace-evil`` is never accepted as living
under ``/workspace``.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from ..exception import AccessDeniedError

logger = logging.getLogger(__name__)


def guard(root: Path, user_path: Optional[str], *, follow_symlinks: bool = True) -> Path:
    """Resolve a client path against the workspace root

    Args:
        root: Canonical workspace root (already resolved)
        user_path: Relative or absolute path, may contain ``..``;
            empty/None/"." means the root itself
        follow_symlinks: Resolve the final component too. Operations that act
            on the entry itself (delete, rename source) pass False so a
            symlink is handled as a link and not as its target.

    Returns:
        Absolute path inside the root

    Raises:
        AccessDeniedError: If the resolution escapes the root
    """
    if user_path is None or user_path in ("", "."):
        return root

    try:
        joined = Path(os.path.normpath(root / user_path))
        if follow_symlinks:
            resolved = joined.resolve()
        else:
            resolved = joined.parent.resolve() / joined.name
    except (OSError, ValueError, RuntimeError) as e:
        # NUL bytes, symlink loops: containment cannot be proven
        logger.warning(f"Invalid path resolution: {user_path!r}, error: {e}")
        raise AccessDeniedError() from e

    if not is_within(root, resolved):
        logger.warning(f"Path traversal attempt: {user_path!r} -> {resolved}")
        raise AccessDeniedError()

    return resolved


def is_within(root: Path, path: Path) -> bool:
    """Check that ``path`` equals ``root`` or is nested under it"""
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


def relative_to_root(root: Path, path: Path) -> str:
    """Render ``path`` relative to ``root`` with forward slashes ("" for the root)"""
    relative = path.relative_to(root).as_posix()
    return "" if relative == "." else relative
