"""File change broadcasting.

Watches the workspace root and re-announces every change as a
``file-change`` event to all connections subscribed to the root's topic,
whoever caused it (a client, a terminal, a background task, another tool).
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Set

import watchfiles
from watchfiles import Change

from .websocket.connection_manager import ConnectionManager
from .workspace.guard import relative_to_root
from .workspace.service import iso_timestamp

logger = logging.getLogger(__name__)


class FileChangeBroadcaster:
    """
    Recursive watcher on the workspace root.

    Event vocabulary: ``add``, ``addDir``, ``change``, ``unlink``,
    ``unlinkDir``. Paths with a dot-prefixed component (``.git``,
    ``.env``...) are ignored.

    Lifecycle:
    - start() from the application lifespan
    - stop() sets the stop event and waits for the watch task
    """

    def __init__(self, root: Path, connections: ConnectionManager, topic: Optional[str] = None):
        self.root = root
        self.connections = connections
        self.topic = topic or str(root)

        # Directories seen so far, relative to root; deletions of these are unlinkDir
        self._directories: Set[str] = set()

        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return

        self._directories = await asyncio.to_thread(self._scan_directories)
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch())

        logger.info(
            f"File watcher started: root={self.root}, "
            f"{len(self._directories)} directories known"
        )

    async def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=2.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                logger.warning("File watcher did not stop in time, cancelled")
            except Exception as e:
                logger.error(f"File watcher ended with error: {e}")

        self._task = None
        self._stop_event = None
        logger.info("File watcher stopped")

    def _scan_directories(self) -> Set[str]:
        known = set()
        for current, dirs, _files in os.walk(self.root):
            dirs[:] = [d for d in dirs if not d.startswith(".")]
            for name in dirs:
                known.add(relative_to_root(self.root, Path(current, name)))
        return known

    def accepts(self, change: Change, path: str) -> bool:
        """watchfiles filter: drop anything under a dot-prefixed component"""
        try:
            relative = Path(path).relative_to(self.root)
        except ValueError:
            return False
        return not any(part.startswith(".") for part in relative.parts)

    async def _watch(self) -> None:
        try:
            async for changes in watchfiles.awatch(
                self.root,
                watch_filter=self.accepts,
                stop_event=self._stop_event,
            ):
                for change, path in sorted(changes, key=lambda c: c[1]):
                    self.handle_change(change, Path(path))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"File watcher failed: {e}", exc_info=True)

    def classify(self, change: Change, path: Path) -> Optional[str]:
        """Map a watchfiles change to the event vocabulary; None to skip"""
        relative = relative_to_root(self.root, path)

        if change == Change.added:
            if path.is_dir() and not path.is_symlink():
                self._directories.add(relative)
                return "addDir"
            return "add"

        if change == Change.modified:
            # Directory mtime updates carry no information of their own
            if path.is_dir():
                return None
            return "change"

        if change == Change.deleted:
            if relative in self._directories:
                prefix = relative + "/"
                self._directories = {
                    d for d in self._directories if d != relative and not d.startswith(prefix)
                }
                return "unlinkDir"
            return "unlink"

        return None

    def handle_change(self, change: Change, path: Path) -> None:
        event = self.classify(change, path)
        if event is None:
            return

        relative = relative_to_root(self.root, path)
        self.connections.publish(self.topic, "file-change", {
            "event": event,
            "path": relative,
            "timestamp": iso_timestamp(),
        })
