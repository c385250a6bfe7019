"""Workspace access module.

Components:
- guard: Path containment check against the workspace root
- WorkspaceService: Guarded file CRUD, directory listing and text search
"""

from .guard import guard, is_within, relative_to_root
from .service import WorkspaceService

__all__ = ['guard', 'is_within', 'relative_to_root', 'WorkspaceService']
