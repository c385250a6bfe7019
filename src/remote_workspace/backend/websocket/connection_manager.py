"""Connection-level WebSocket message delivery.

Every client connection owns an outbound queue drained by a forwarding task,
so events produced anywhere (handlers, PTY reader callbacks, the file watcher
or a worker thread) reach the socket in the order they were emitted.

Architecture:
    Producer (main loop or worker thread)
        ↓ connection.emit(event, data)
        ↓ put_nowait / call_soon_threadsafe
    Main event loop
        Connection._forward_messages()
            ↓ queue.get()
            ↓ websocket.send_json({"event": ..., "data": ...})
        Client
"""

import asyncio
import logging
import uuid
from typing import Any, Coroutine, Dict, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Connection:
    """
    One live client connection.

    Attributes:
        id: Random connection id (used in logs only)
        websocket: Underlying FastAPI WebSocket
        topics: Topics this connection is subscribed to
        closed: Set once disconnected; later emits are dropped

    Long-running handlers run as tasks owned by the connection (see
    spawn()); close() cancels whatever is still in flight.
    """

    def __init__(self, websocket: WebSocket):
        self.id = uuid.uuid4().hex[:12]
        self.websocket = websocket
        self.topics: Set[str] = set()
        self.closed = False

        self._queue: asyncio.Queue = asyncio.Queue()
        self._loop = asyncio.get_running_loop()
        self._task: Optional[asyncio.Task] = None

        # In-flight handler tasks
        self._pending: Set[asyncio.Task] = set()

    def start(self) -> None:
        self._task = asyncio.create_task(self._forward_messages())

        def task_done_callback(t: asyncio.Task):
            if not t.cancelled() and t.exception():
                exc = t.exception()
                logger.error(
                    f"Forwarding task failed for connection {self.id}: {exc}",
                    exc_info=(type(exc), exc, exc.__traceback__)
                )

        self._task.add_done_callback(task_done_callback)

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run a handler coroutine alongside the receive loop"""
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    def emit(self, event: str, data: Any) -> None:
        """
        Queue an event for this connection.

        Thread-safe: calls from outside the main loop are scheduled onto it.
        """
        message = {"event": event, "data": data}

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._enqueue(message)
        else:
            self._loop.call_soon_threadsafe(self._enqueue, message)

    def _enqueue(self, message: dict) -> None:
        if self.closed:
            logger.debug(
                f"Connection {self.id} closed, dropping event: {message['event']}"
            )
            return
        self._queue.put_nowait(message)

    async def _forward_messages(self) -> None:
        """Forward queued events to the WebSocket until closed"""
        logger.debug(f"Message forwarding task started for connection {self.id}")

        try:
            while not self.closed:
                message = await self._queue.get()
                try:
                    await self.websocket.send_json(message)
                except Exception as e:
                    # Socket gone; the receive loop notices and cleans up
                    logger.debug(f"Error forwarding to connection {self.id}: {e}")
                    break
        except asyncio.CancelledError:
            logger.debug(f"Message forwarding task cancelled for connection {self.id}")
            raise
        finally:
            logger.debug(f"Message forwarding task ended for connection {self.id}")

    async def close(self) -> None:
        """Cancel in-flight handlers and stop forwarding; pending events are dropped"""
        self.closed = True

        if self._pending:
            pending = list(self._pending)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.debug(f"Cancelled {len(pending)} handlers for connection {self.id}")

        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=1.0)
            except asyncio.CancelledError:
                pass
            except asyncio.TimeoutError:
                logger.warning(f"Task cancellation timed out for connection {self.id}")


class ConnectionManager:
    """
    Registry of live connections plus topic subscriptions.

    A topic is any string; the daemon uses the workspace root so that every
    client of a workspace gets its ``file-change`` events.

    Lifecycle:
    - Created once per application and stored in app.state
    - disconnect_all() runs during application shutdown
    """

    def __init__(self):
        # Live connections: {connection_id → Connection}
        self._connections: Dict[str, Connection] = {}

        # Subscriptions: {topic → {connection_id}}
        self._topics: Dict[str, Set[str]] = {}

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> Connection:
        """Register an accepted WebSocket and start forwarding to it"""
        connection = Connection(websocket)
        self._connections[connection.id] = connection
        connection.start()

        logger.info(f"Connection {connection.id} opened ({len(self._connections)} live)")
        return connection

    async def disconnect(self, connection: Connection) -> None:
        """Unsubscribe from everything and stop forwarding. Idempotent."""
        if self._connections.pop(connection.id, None) is None:
            return

        for topic in list(connection.topics):
            self.unsubscribe(connection, topic)

        await connection.close()

        logger.info(f"Connection {connection.id} closed ({len(self._connections)} live)")

    def subscribe(self, connection: Connection, topic: str) -> None:
        self._topics.setdefault(topic, set()).add(connection.id)
        connection.topics.add(topic)

    def unsubscribe(self, connection: Connection, topic: str) -> None:
        subscribers = self._topics.get(topic)
        if subscribers is not None:
            subscribers.discard(connection.id)
            if not subscribers:
                del self._topics[topic]
        connection.topics.discard(topic)

    def subscribers(self, topic: str) -> List[Connection]:
        return [
            self._connections[cid]
            for cid in self._topics.get(topic, ())
            if cid in self._connections
        ]

    def publish(self, topic: str, event: str, data: Any) -> int:
        """
        Emit an event to every subscriber of ``topic``.

        Returns:
            Number of connections the event was queued for
        """
        targets = self.subscribers(topic)
        for connection in targets:
            connection.emit(event, data)

        logger.debug(f"Published {event} to {len(targets)} connections on {topic}")
        return len(targets)

    async def disconnect_all(self) -> None:
        """Close every connection (application shutdown)"""
        connections = list(self._connections.values())

        for connection in connections:
            try:
                await connection.websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket for connection {connection.id}: {e}")
            await self.disconnect(connection)

        logger.info(f"Disconnected all connections ({len(connections)})")
