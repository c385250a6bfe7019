"""FastAPI application factory and configuration"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import (
    files_router,
    git_router,
    search_router,
    system_router,
    tasks_router,
    websocket_router,
)
from .config import Settings, get_settings
from .exception import WorkspaceException
from .terminal import TerminalManager
from .watcher import FileChangeBroadcaster
from .websocket import ConnectionManager, EventRouter
from .websocket.router import describe_validation_error
from .workspace import WorkspaceService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    state = app.state
    state.started_at = time.monotonic()

    # Startup: File change broadcaster
    if state.settings.watch_enabled:
        logger.info("Starting file watcher...")
        try:
            await state.watcher.start()
        except Exception as e:
            # The daemon is still useful without change notifications
            logger.error(f"File watcher failed to start: {e}")

    logger.info(
        f"Workspace daemon ready: root={state.settings.workspace_root}, "
        f"port={state.settings.port}"
    )

    yield

    # Shutdown: Kill every terminal
    logger.info("Cleaning up terminals...")
    try:
        await state.terminal_manager.cleanup_all()
    except Exception as e:
        logger.error(f"Terminal cleanup failed: {e}")

    # Shutdown: Disconnect all WebSockets
    logger.info("Disconnecting all WebSocket connections...")
    try:
        await state.connection_manager.disconnect_all()
    except Exception as e:
        logger.error(f"WebSocket cleanup failed: {e}")

    # Shutdown: Stop the watcher
    if state.watcher.running:
        await state.watcher.stop()

    logger.info("Application shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application instance

    Builds the per-process components (workspace service, terminal registry,
    connection manager, event router, file watcher), stores them in
    ``app.state`` for dependency injection, configures CORS, registers
    exception handlers and includes routers.

    Logging is configured by the caller (the CLI), not here.

    Args:
        settings: Daemon settings; built from env/TOML when omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    root = settings.workspace_root

    app = FastAPI(
        title="Remote Workspace",
        description="Workspace daemon: files, terminals, tasks and search over WebSocket",
        lifespan=lifespan,
    )

    # ==================== Components ====================

    service = WorkspaceService(root)
    terminal_manager = TerminalManager(root, settings)
    connection_manager = ConnectionManager()
    fs_limit = asyncio.Semaphore(settings.fs_max_workers)

    app.state.settings = settings
    app.state.workspace_service = service
    app.state.terminal_manager = terminal_manager
    app.state.connection_manager = connection_manager
    app.state.fs_limit = fs_limit
    app.state.event_router = EventRouter(service, terminal_manager, fs_limit)
    app.state.workspace_topic = str(root)
    app.state.watcher = FileChangeBroadcaster(root, connection_manager, app.state.workspace_topic)
    app.state.started_at = time.monotonic()

    # ==================== CORS Configuration ====================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # ==================== Exception Handlers ====================

    @app.exception_handler(WorkspaceException)
    async def workspace_exception_handler(request: Request, exc: WorkspaceException) -> JSONResponse:
        """Map workspace errors to ``{"error": message}`` with their HTTP status

        AccessDeniedError → 403, NotFoundError → 404, everything else → 500.
        """
        logger.debug(f"{request.url.path}: {exc.code}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle Pydantic validation errors of request bodies and queries"""
        return JSONResponse(
            status_code=422,
            content={"error": describe_validation_error(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc)},
        )

    # ==================== Router Registration ====================

    app.include_router(system_router)
    app.include_router(files_router)
    app.include_router(git_router)
    app.include_router(tasks_router)
    app.include_router(search_router)
    app.include_router(websocket_router)

    return app
