"""WebSocket connection management and event routing."""

from .connection_manager import Connection, ConnectionManager
from .router import EventRouter

__all__ = ["Connection", "ConnectionManager", "EventRouter"]
