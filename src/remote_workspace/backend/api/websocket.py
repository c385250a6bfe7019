"""WebSocket endpoint carrying the named-event protocol"""

import json
import logging

from fastapi import APIRouter, WebSocket

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Workspace WebSocket endpoint.

    Connection Establishment:
    1. Server accepts the connection (authentication is handled upstream)
    2. Server registers it in the ConnectionManager and subscribes it to the
       workspace root's topic, so it receives ``file-change`` events

    Client → Server Message Format:
    {
        "event": "read-file",
        "data": {"path": "src/main.py"}
    }

    Server → Client Message Format:
    {
        "event": "file-content",
        "data": {"path": "src/main.py", "content": "...", "encoding": "utf8"}
    }

    File and terminal events are handled one at a time, in arrival order.
    ``run-task`` and ``git-*`` run alongside and reply when their process
    exits. A malformed frame (binary, not JSON, not an object) is answered
    with an ``error`` event; it never closes the connection.

    Cleanup (on disconnect):
    1. Kill every terminal this connection created
    2. Cancel in-flight task and git handlers
    3. Unsubscribe and stop forwarding
    """
    state = websocket.app.state
    connections = state.connection_manager
    event_router = state.event_router
    terminals = state.terminal_manager

    await websocket.accept()

    connection = await connections.connect(websocket)
    connections.subscribe(connection, state.workspace_topic)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                logger.info(f"Connection {connection.id} disconnected normally")
                break

            raw = frame.get("text")
            if raw is None:
                # Binary frame
                connection.emit("error", {"message": "Malformed message: expected JSON"})
                continue

            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                connection.emit("error", {"message": "Malformed message: expected JSON"})
                continue

            if not isinstance(message, dict):
                connection.emit("error", {"message": "Malformed message: expected an object"})
                continue

            await event_router.submit(connection, message.get("event"), message.get("data"))

    except Exception as e:
        logger.error(
            f"Unexpected error in WebSocket connection {connection.id}: {e}",
            exc_info=True
        )
    finally:
        removed = await terminals.cleanup_owner(connection)
        await connections.disconnect(connection)
        logger.info(
            f"Connection {connection.id} WebSocket connection closed "
            f"({removed} terminals cleaned up)"
        )
