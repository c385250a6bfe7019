"""
API package: REST endpoints and the WebSocket endpoint.
"""

from .files import router as files_router
from .git import router as git_router
from .search import router as search_router
from .system import router as system_router
from .tasks import router as tasks_router
from .websocket import router as websocket_router

__all__ = [
    "files_router",
    "git_router",
    "search_router",
    "system_router",
    "tasks_router",
    "websocket_router",
]
