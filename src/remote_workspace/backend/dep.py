"""Dependency injection functions for FastAPI routes"""

import asyncio
from typing import Annotated

from fastapi import Depends, Request

from .config import Settings
from .terminal import TerminalManager
from .workspace import WorkspaceService


def get_settings_dep(request: Request) -> Settings:
    """Settings the application was created with"""
    return request.app.state.settings


def get_workspace_service(request: Request) -> WorkspaceService:
    """Guarded file operations for the configured workspace root

    Usage:
        @router.get("/example")
        async def example_route(service: WorkspaceDep):
            items = service.list_directory("")
    """
    return request.app.state.workspace_service


def get_terminal_manager(request: Request) -> TerminalManager:
    return request.app.state.terminal_manager


def get_fs_limit(request: Request) -> asyncio.Semaphore:
    """Semaphore bounding concurrent filesystem walks in worker threads"""
    return request.app.state.fs_limit


SettingsDep = Annotated[Settings, Depends(get_settings_dep)]
WorkspaceDep = Annotated[WorkspaceService, Depends(get_workspace_service)]
TerminalManagerDep = Annotated[TerminalManager, Depends(get_terminal_manager)]
FsLimitDep = Annotated[asyncio.Semaphore, Depends(get_fs_limit)]
