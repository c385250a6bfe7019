"""Named-event routing for WebSocket connections.

Client → Server:
    {"event": "read-file", "data": {"path": "src/main.py"}}

Server → Client:
    {"event": "file-content", "data": {"path": "src/main.py", "content": "...", "encoding": "utf8"}}
    {"event": "error", "data": {"message": "Access denied"}}

Every handler validates its payload with pydantic, does its work, and emits
the reply to the calling connection. Failures never escape a handler: they are
reported as an ``error`` event (``task-error`` for ``run-task``) and the
connection stays open.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from pydantic import BaseModel, ValidationError

from ..exception import WorkspaceException
from ..process import git, runner
from ..schema import (
    CloseTerminalRequest,
    CreateFileRequest,
    CreateTerminalRequest,
    DeleteFileRequest,
    GitCommitRequest,
    GitStatusRequest,
    ListDirectoryRequest,
    ReadFileRequest,
    RenameFileRequest,
    ResizeTerminalRequest,
    RunTaskRequest,
    SearchFilesRequest,
    TerminalInputRequest,
    WriteFileRequest,
)
from ..terminal import TerminalManager
from ..workspace import WorkspaceService
from .connection_manager import Connection

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]

# Events that wait on a child process; these run concurrently so the
# connection keeps reading (terminal input, close-terminal, disconnect)
CONCURRENT_EVENTS = frozenset({"run-task", "git-status", "git-commit"})


def describe_validation_error(error) -> str:
    """Flatten pydantic errors into one line: ``path: Field required; ...``"""
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"])
        parts.append(f"{location}: {err['msg']}" if location else err["msg"])
    return "Invalid payload: " + "; ".join(parts)


class EventRouter:
    """
    Dispatches incoming events to handlers.

    One router serves every connection of the application; per-connection
    state lives in :class:`Connection` and the terminal registry.

    Attributes:
        service: File operations bound to the workspace root
        terminals: Terminal registry
    """

    def __init__(
        self,
        service: WorkspaceService,
        terminals: TerminalManager,
        fs_limit: asyncio.Semaphore,
    ):
        self.service = service
        self.terminals = terminals
        self._fs_limit = fs_limit

        self._handlers: Dict[str, Handler] = {
            "read-file": self.read_file,
            "write-file": self.write_file,
            "create-file": self.create_file,
            "delete-file": self.delete_file,
            "rename-file": self.rename_file,
            "list-directory": self.list_directory,
            "create-terminal": self.create_terminal,
            "terminal-input": self.terminal_input,
            "resize-terminal": self.resize_terminal,
            "close-terminal": self.close_terminal,
            "git-status": self.git_status,
            "git-commit": self.git_commit,
            "search-files": self.search_files,
            "run-task": self.run_task,
        }

    @property
    def events(self) -> list[str]:
        return list(self._handlers)

    async def submit(self, connection: Connection, event: Any, data: Any) -> None:
        """Entry point for the receive loop

        File and terminal events are handled in arrival order; process-bound
        events are spawned on the connection and reply when they finish.
        """
        if isinstance(event, str) and event in CONCURRENT_EVENTS:
            connection.spawn(self.dispatch(connection, event, data))
        else:
            await self.dispatch(connection, event, data)

    async def dispatch(self, connection: Connection, event: Any, data: Any) -> None:
        """Handle one event; never raises"""
        handler = self._handlers.get(event) if isinstance(event, str) else None
        if handler is None:
            logger.warning(f"Unknown event from connection {connection.id}: {event!r}")
            connection.emit("error", {"message": f"Unknown event: {event}"})
            return

        logger.debug(f"Dispatching {event} for connection {connection.id}")

        try:
            await handler(connection, data if data is not None else {})
        except ValidationError as e:
            connection.emit("error", {"message": describe_validation_error(e)})
        except WorkspaceException as e:
            logger.debug(f"{event} failed: {e.code}: {e.message}")
            connection.emit("error", {"message": e.message})
        except Exception as e:
            logger.error(f"Unexpected error handling {event}: {e}", exc_info=True)
            connection.emit("error", {"message": str(e)})

    async def _offload(self, func, *args, **kwargs):
        """Run blocking filesystem work in a worker thread, bounded"""
        async with self._fs_limit:
            return await asyncio.to_thread(func, *args, **kwargs)

    # ==================== Files ====================

    async def read_file(self, connection: Connection, data: Any) -> None:
        request = ReadFileRequest.model_validate(data)
        content = await self._offload(self.service.read_file, request.path, request.encoding)
        connection.emit("file-content", {
            "path": request.path,
            "content": content,
            "encoding": request.encoding,
        })

    async def write_file(self, connection: Connection, data: Any) -> None:
        request = WriteFileRequest.model_validate(data)
        await self._offload(
            self.service.write_file, request.path, request.content, request.encoding
        )
        connection.emit("file-saved", {"path": request.path})

    async def create_file(self, connection: Connection, data: Any) -> None:
        request = CreateFileRequest.model_validate(data)
        await self._offload(self.service.create_file, request.path, request.content)
        connection.emit("file-created", {"path": request.path})

    async def delete_file(self, connection: Connection, data: Any) -> None:
        request = DeleteFileRequest.model_validate(data)
        await self._offload(self.service.delete_file, request.path, request.recursive)
        connection.emit("file-deleted", {"path": request.path})

    async def rename_file(self, connection: Connection, data: Any) -> None:
        request = RenameFileRequest.model_validate(data)
        await self._offload(self.service.rename_file, request.old_path, request.new_path)
        connection.emit("file-renamed", {
            "oldPath": request.old_path,
            "newPath": request.new_path,
        })

    async def list_directory(self, connection: Connection, data: Any) -> None:
        request = ListDirectoryRequest.model_validate(data)
        items = await self._offload(
            self.service.list_directory, request.path, request.recursive
        )
        connection.emit("directory-listing", {
            "path": request.path,
            "items": _dump(items),
        })

    # ==================== Terminals ====================

    async def create_terminal(self, connection: Connection, data: Any) -> None:
        request = CreateTerminalRequest.model_validate(data)
        # terminal-created is emitted by the session itself
        await self.terminals.create_terminal(
            request.id,
            connection,
            cols=request.cols,
            rows=request.rows,
            cwd=request.cwd,
        )

    async def terminal_input(self, connection: Connection, data: Any) -> None:
        request = TerminalInputRequest.model_validate(data)
        await self.terminals.send_input(request.id, request.input)

    async def resize_terminal(self, connection: Connection, data: Any) -> None:
        request = ResizeTerminalRequest.model_validate(data)
        self.terminals.resize_terminal(request.id, request.cols, request.rows)

    async def close_terminal(self, connection: Connection, data: Any) -> None:
        request = CloseTerminalRequest.model_validate(data)
        await self.terminals.close_terminal(request.id)

    # ==================== Git / search / tasks ====================

    async def git_status(self, connection: Connection, data: Any) -> None:
        request = GitStatusRequest.model_validate(data)
        cwd = self.service.resolve(request.cwd)
        status = await git.git_status(cwd)
        connection.emit("git-status-result", {"status": status, "cwd": request.cwd})

    async def git_commit(self, connection: Connection, data: Any) -> None:
        request = GitCommitRequest.model_validate(data)
        cwd = self.service.resolve(request.cwd)
        result = await git.git_commit(self.service.root, cwd, request.message, request.files)
        connection.emit("git-commit-result", {"result": result, "cwd": request.cwd})

    async def search_files(self, connection: Connection, data: Any) -> None:
        request = SearchFilesRequest.model_validate(data)
        results = await self._offload(
            self.service.search_files,
            request.query,
            request.include,
            request.exclude,
            request.cwd,
        )
        connection.emit("search-results", {
            "query": request.query,
            "results": _dump(results),
            "cwd": request.cwd,
        })

    async def run_task(self, connection: Connection, data: Any) -> None:
        """Run a command; failures are reported as ``task-error``

        A working directory outside the workspace is still a plain ``error``.
        """
        command = data.get("command") if isinstance(data, dict) else None
        try:
            request = RunTaskRequest.model_validate(data)
        except ValidationError as e:
            connection.emit("task-error", {
                "command": command,
                "error": describe_validation_error(e),
            })
            return

        cwd = self.service.resolve(request.cwd)

        try:
            outcome = await runner.run_task(request.command, cwd, request.background)
        except Exception as e:
            if not isinstance(e, WorkspaceException):
                logger.error(f"Task failed to run: {request.command!r}: {e}", exc_info=True)
            connection.emit("task-error", {
                "command": request.command,
                "error": getattr(e, "message", None) or str(e),
            })
            return

        if isinstance(outcome, int):
            connection.emit("task-started", {"command": request.command, "pid": outcome})
        else:
            connection.emit("task-completed", {
                "command": request.command,
                **outcome.model_dump(by_alias=True),
            })


def _dump(models: list[BaseModel]) -> list[dict]:
    return [m.model_dump(by_alias=True) for m in models]
