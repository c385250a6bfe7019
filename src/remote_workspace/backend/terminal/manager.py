"""Terminal manager for coordinating all terminal sessions.

This module provides centralized management of PTY sessions, handling:
- Session lifecycle (creation, tracking, cleanup)
- Working directory resolution inside the workspace
- Per-connection ownership, so a closed connection takes its terminals along
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from ..config import Settings
from ..workspace.guard import guard
from .pty_session import PTYSession

logger = logging.getLogger(__name__)


class TerminalManager:
    """
    Global registry of terminal sessions, keyed by client-supplied id.

    Ids are shared across connections. Creating a terminal with an id that is
    already registered replaces the registration (last writer wins) and kills
    the displaced session.

    Thread Safety:
    - The registry dict is guarded by a lock; removal is idempotent, so the
      natural-exit path and an explicit close can race without harm
    - PTYSession instances run in the main loop

    Attributes:
        root: Workspace root that terminal working directories are confined to
        settings: Shell and default window size
    """

    def __init__(self, root: Path, settings: Settings):
        self.root = root
        self.settings = settings
        self._terminals: Dict[str, PTYSession] = {}
        self._lock = threading.Lock()

        logger.info("TerminalManager initialized")

    def __len__(self) -> int:
        with self._lock:
            return len(self._terminals)

    def get(self, terminal_id: str) -> Optional[PTYSession]:
        with self._lock:
            return self._terminals.get(terminal_id)

    def register(self, session: PTYSession) -> Optional[PTYSession]:
        """Map ``session.terminal_id`` to ``session``; return what it displaced"""
        with self._lock:
            previous = self._terminals.get(session.terminal_id)
            self._terminals[session.terminal_id] = session
        return previous if previous is not session else None

    def remove(self, terminal_id: str, session: Optional[PTYSession] = None) -> Optional[PTYSession]:
        """
        Drop a registration.

        Args:
            terminal_id: Terminal id
            session: Only remove if the id still maps to this session

        Returns:
            The removed session, or None if there was nothing to remove
        """
        with self._lock:
            current = self._terminals.get(terminal_id)
            if current is None or (session is not None and current is not session):
                return None
            del self._terminals[terminal_id]
            return current

    def owned_by(self, owner) -> List[PTYSession]:
        with self._lock:
            return [s for s in self._terminals.values() if s.owner is owner]

    async def create_terminal(
        self,
        terminal_id: str,
        owner,
        cols: Optional[int] = None,
        rows: Optional[int] = None,
        cwd: Optional[str] = None,
    ) -> PTYSession:
        """
        Start a new terminal session.

        Steps:
        1. Guard the working directory
        2. Spawn the shell (emits ``terminal-created`` to the owner)
        3. Register, killing any session displaced under the same id

        Raises:
            AccessDeniedError: If cwd escapes the workspace
            ProcessSpawnError: If the shell cannot be started
        """
        workdir = guard(self.root, cwd)

        logger.info(
            f"[TerminalManager] Starting terminal: terminal_id={terminal_id}, cwd={workdir}"
        )

        session = PTYSession(
            terminal_id,
            workdir,
            owner,
            shell=self.settings.shell,
            cols=cols or self.settings.terminal_cols,
            rows=rows or self.settings.terminal_rows,
            term=self.settings.terminal_term,
            on_exit=self._on_session_exit,
        )
        await session.start()

        displaced = self.register(session)
        if displaced is not None:
            logger.warning(
                f"[TerminalManager] Terminal id reused, killing previous session: "
                f"terminal_id={terminal_id}"
            )
            await displaced.stop()

        return session

    def _on_session_exit(self, session: PTYSession) -> None:
        self.remove(session.terminal_id, session)

    async def send_input(self, terminal_id: str, data: str) -> bool:
        """Write input to a terminal; False if the id is unknown"""
        session = self.get(terminal_id)
        if session is None or not session.running:
            logger.debug(f"[TerminalManager] Input for unknown terminal: {terminal_id}")
            return False

        await session.write(data)
        return True

    def resize_terminal(self, terminal_id: str, cols: int, rows: int) -> bool:
        """Resize a terminal; False if the id is unknown"""
        session = self.get(terminal_id)
        if session is None or not session.running:
            logger.debug(f"[TerminalManager] Resize for unknown terminal: {terminal_id}")
            return False

        session.resize(cols, rows)
        return True

    async def close_terminal(self, terminal_id: str) -> bool:
        """
        Kill and unregister a terminal.

        Note:
            Safe to call if terminal doesn't exist (returns False)
        """
        session = self.remove(terminal_id)
        if session is None:
            logger.debug(f"[TerminalManager] Terminal not found: terminal_id={terminal_id}")
            return False

        logger.info(f"[TerminalManager] Closing terminal: terminal_id={terminal_id}")
        await session.stop()
        return True

    async def cleanup_owner(self, owner) -> int:
        """
        Kill and unregister every terminal created by ``owner``.

        Called when a connection closes. Errors are logged but don't stop
        cleanup.

        Returns:
            Number of terminals removed
        """
        removed = [s for s in self.owned_by(owner) if self.remove(s.terminal_id, s) is s]

        for session in removed:
            try:
                await session.stop()
            except Exception as e:
                logger.error(f"Error stopping terminal {session.terminal_id}: {e}")

        if removed:
            logger.info(f"[TerminalManager] Cleaned up {len(removed)} terminals for closed connection")
        return len(removed)

    async def cleanup_all(self) -> None:
        """Stop all terminal sessions (application shutdown)"""
        with self._lock:
            sessions = list(self._terminals.values())
            self._terminals.clear()

        if not sessions:
            logger.debug("[TerminalManager] No terminals to cleanup")
            return

        logger.info(f"[TerminalManager] Cleaning up {len(sessions)} terminals")

        for session in sessions:
            try:
                await session.stop()
            except Exception as e:
                logger.error(f"Error stopping terminal {session.terminal_id}: {e}")

        logger.info("[TerminalManager] All terminals cleaned up")
