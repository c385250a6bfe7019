"""Terminal management module for PTY sessions."""

from .manager import TerminalManager
from .pty_session import PTYSession

__all__ = ["TerminalManager", "PTYSession"]
