"""PTY session management for individual terminal instances.

This module manages a single PTY (pseudo-terminal) process, handling:
- Process lifecycle (fork, exec, kill, reap)
- Bidirectional I/O (read output, write input)
- Terminal sizing (TIOCSWINSZ ioctl)
- Event delivery to the owning connection
"""

import asyncio
import codecs
import fcntl
import logging
import os
import pty
import shutil
import signal
import struct
import termios
from pathlib import Path
from typing import Callable, Optional

from ..exception import ProcessSpawnError

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class PTYSession:
    """
    Manages a single PTY process for one terminal session.

    Architecture:
    - Runs in the main event loop
    - fork() and input writes run in the default executor
    - Output is picked up with loop.add_reader() on the master fd, so an idle
      terminal costs no thread

    Lifecycle:
    1. start() - Fork the shell, announce ``terminal-created``, begin reading
    2. write() / resize() - Forward client input and window size
    3. Exit - either stop() (kill) or EOF on the master fd (natural exit);
       whichever comes first emits ``terminal-exit`` exactly once

    Attributes:
        terminal_id: Client-supplied terminal id
        cwd: Working directory of the shell
        owner: Connection that created the terminal (receives all events)
        master_fd: PTY master file descriptor (or None once closed)
        pid: Child process ID (or None if not started)
        running: Whether the PTY is currently active
    """

    def __init__(
        self,
        terminal_id: str,
        cwd: Path,
        owner,
        shell: str = "/bin/bash",
        cols: int = 80,
        rows: int = 24,
        term: str = "xterm-color",
        on_exit: Optional[Callable[["PTYSession"], None]] = None,
    ):
        """
        Initialize PTY session.

        Args:
            terminal_id: Client-supplied terminal id
            cwd: Working directory for the shell (already guarded)
            owner: Connection with an ``emit(event, data)`` method
            shell: Shell executable
            cols: Initial terminal width
            rows: Initial terminal height
            term: Value of TERM in the child environment
            on_exit: Called after a natural exit so the registry can drop us
        """
        self.terminal_id = terminal_id
        self.cwd = cwd
        self.owner = owner
        self.shell = shell
        self.cols = cols
        self.rows = rows
        self.term = term
        self._on_exit = on_exit

        # PTY state
        self.master_fd: Optional[int] = None
        self.pid: Optional[int] = None
        self.running = False

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._exit_task: Optional[asyncio.Task] = None

        logger.debug(f"PTYSession initialized: terminal_id={terminal_id}, cwd={cwd}")

    async def start(self) -> None:
        """
        Start the PTY process.

        Raises:
            RuntimeError: If already started
            ProcessSpawnError: If the shell cannot be found or fork fails
        """
        if self.running:
            raise RuntimeError(f"PTY already running: terminal_id={self.terminal_id}")

        shell_path = shutil.which(self.shell)
        if shell_path is None:
            raise ProcessSpawnError(f"Shell not found: {self.shell}")
        if not self.cwd.is_dir():
            raise ProcessSpawnError(f"Working directory does not exist: {self.cwd}")

        logger.info(f"[PTYSession] Starting: terminal_id={self.terminal_id}, shell={shell_path}")

        self._loop = asyncio.get_running_loop()
        try:
            self.pid, self.master_fd = await self._loop.run_in_executor(
                None, self._fork_pty, shell_path
            )
        except OSError as e:
            logger.error(f"[PTYSession] Fork failed: terminal_id={self.terminal_id}, error={e}")
            raise ProcessSpawnError(f"Failed to start terminal: {e}") from e

        self.running = True

        # Announce before any output can be delivered
        self.owner.emit("terminal-created", {"id": self.terminal_id})
        self._loop.add_reader(self.master_fd, self._on_readable)

        logger.info(f"[PTYSession] Started: terminal_id={self.terminal_id}, pid={self.pid}")

    def _fork_pty(self, shell_path: str) -> tuple[int, int]:
        """
        Fork PTY process (blocking operation, runs in executor).

        Returns:
            Tuple of (pid, master_fd)
        """
        env = dict(os.environ)
        env["TERM"] = self.term
        env["PWD"] = str(self.cwd)

        pid, master_fd = pty.fork()

        if pid == 0:  # Child process
            try:
                os.chdir(self.cwd)
                os.execve(shell_path, [shell_path], env)
            except Exception as e:
                os.write(2, f"Failed to start shell: {e}\r\n".encode())
            os._exit(127)

        # Parent process
        self._set_winsize(master_fd, self.cols, self.rows)
        return pid, master_fd

    def _on_readable(self) -> None:
        """Reader callback: forward a chunk of output, or detect EOF"""
        try:
            data = os.read(self.master_fd, READ_CHUNK_SIZE)
        except OSError:
            # EIO once the child side of the PTY is closed
            data = b""

        if not data:
            self._detach_reader()
            if self.running and self._exit_task is None:
                self._exit_task = asyncio.ensure_future(self._handle_exit())
            return

        text = self._decoder.decode(data)
        if text:
            self._send_output(text)

    async def write(self, data: str) -> None:
        """
        Write user input to PTY.

        Raises:
            RuntimeError: If PTY not running
        """
        if not self.running or self.master_fd is None:
            raise RuntimeError(f"PTY not running: terminal_id={self.terminal_id}")

        logger.debug(
            f"[PTYSession] Writing input: terminal_id={self.terminal_id}, "
            f"data_length={len(data)}"
        )

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(
            None, self._write_all, self.master_fd, data.encode('utf-8')
        )

    @staticmethod
    def _write_all(fd: int, payload: bytes) -> None:
        while payload:
            written = os.write(fd, payload)
            payload = payload[written:]

    def resize(self, cols: int, rows: int) -> None:
        """
        Resize terminal window.

        Raises:
            RuntimeError: If PTY not running
        """
        if not self.running or self.master_fd is None:
            raise RuntimeError(f"PTY not running: terminal_id={self.terminal_id}")

        logger.debug(
            f"[PTYSession] Resizing: terminal_id={self.terminal_id}, "
            f"cols={cols}, rows={rows}"
        )

        self._set_winsize(self.master_fd, cols, rows)
        self.cols, self.rows = cols, rows

    @staticmethod
    def _set_winsize(fd: int, cols: int, rows: int) -> None:
        # Pack window size: (rows, cols, xpixel, ypixel)
        winsize = struct.pack("HHHH", rows, cols, 0, 0)
        fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)

    async def stop(self) -> None:
        """
        Kill the PTY process and release its resources.

        SIGHUP first (interactive shells ignore SIGTERM), SIGKILL if the
        process is still around after half a second.

        Note:
            Safe to call multiple times (idempotent)
        """
        if not self.running:
            logger.debug(f"[PTYSession] Already stopped: terminal_id={self.terminal_id}")
            return

        logger.info(f"[PTYSession] Stopping: terminal_id={self.terminal_id}")

        self.running = False
        self._detach_reader()
        self._signal(signal.SIGHUP)
        self._close_fd()

        if not await self._wait_for_exit(0.5):
            self._signal(signal.SIGKILL)
            await self._wait_for_exit(1.0)

        self.owner.emit("terminal-exit", {"id": self.terminal_id})

        logger.info(f"[PTYSession] Stopped: terminal_id={self.terminal_id}")

    async def _handle_exit(self) -> None:
        """Natural exit: the shell closed its side of the PTY"""
        if not self.running:
            return

        self.running = False
        self._close_fd()

        if not await self._wait_for_exit(1.0):
            # Slave closed but the process lingers
            self._signal(signal.SIGKILL)
            await self._wait_for_exit(1.0)

        logger.info(f"[PTYSession] Exited: terminal_id={self.terminal_id}, pid={self.pid}")

        self.owner.emit("terminal-exit", {"id": self.terminal_id})

        if self._on_exit is not None:
            self._on_exit(self)

    async def _wait_for_exit(self, timeout: float) -> bool:
        """Reap the child, polling until ``timeout``; True once it is gone"""
        if self.pid is None:
            return True

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            try:
                pid, _ = os.waitpid(self.pid, os.WNOHANG)
            except ChildProcessError:
                return True
            if pid:
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(0.05)

    def _signal(self, signum: int) -> None:
        if self.pid is None:
            return
        try:
            os.kill(self.pid, signum)
        except ProcessLookupError:
            pass  # Process already exited

    def _detach_reader(self) -> None:
        if self._loop is not None and self.master_fd is not None:
            self._loop.remove_reader(self.master_fd)

    def _close_fd(self) -> None:
        if self.master_fd is not None:
            try:
                os.close(self.master_fd)
            except OSError:
                pass
            self.master_fd = None

    def _send_output(self, data: str) -> None:
        """Forward terminal output verbatim to the owning connection"""
        self.owner.emit("terminal-data", {"id": self.terminal_id, "data": data})
