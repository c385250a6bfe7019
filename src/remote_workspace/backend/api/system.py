"""Health endpoint"""

import logging
import time

from fastapi import APIRouter, Request

from ..dep import SettingsDep, TerminalManagerDep
from ..workspace.service import iso_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


@router.get("/health")
async def health_check(
    request: Request,
    settings: SettingsDep,
    terminals: TerminalManagerDep,
):
    """Liveness probe with a few runtime facts

    Response:
        {
          "status": "healthy",
          "timestamp": "2025-01-01T00:00:00.000Z",
          "workspace": "/home/dev/project",
          "port": 37507,
          "activeTerminals": 2,
          "uptime": 12.5
        }
    """
    return {
        "status": "healthy",
        "timestamp": iso_timestamp(),
        "workspace": str(settings.workspace_root),
        "port": settings.port,
        "activeTerminals": len(terminals),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
    }
