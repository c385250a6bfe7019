"""Command execution endpoint"""

import logging

from fastapi import APIRouter

from ..dep import WorkspaceDep
from ..process import runner
from ..schema import RunTaskRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


@router.post("/run")
async def run_task(body: RunTaskRequest, service: WorkspaceDep):
    """Run a command in the foreground or launch it in the background

    Response (background):
        {"status": "started", "pid": 12345}

    Response (foreground):
        {"status": "completed", "stdout": "...", "stderr": "", "exitCode": 0}
    """
    workdir = service.resolve(body.cwd)
    outcome = await runner.run_task(body.command, workdir, body.background)

    if isinstance(outcome, int):
        return {"status": "started", "pid": outcome}
    return {"status": "completed", **outcome.model_dump(by_alias=True)}
