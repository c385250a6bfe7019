"""Git endpoints"""

import logging
from typing import Optional

from fastapi import APIRouter

from ..dep import WorkspaceDep
from ..process import git
from ..schema import GitCommitRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/git", tags=["Git"])


@router.get("/status")
async def git_status(service: WorkspaceDep, cwd: Optional[str] = None):
    """``git status --porcelain`` of the repository at ``cwd``

    Response:
        {"status": " M src/app.py\\n", "cwd": "src"}
    """
    workdir = service.resolve(cwd)
    status = await git.git_status(workdir)
    return {"status": status, "cwd": cwd}


@router.post("/commit")
async def git_commit(body: GitCommitRequest, service: WorkspaceDep):
    """Stage ``files`` (if any) and commit

    Response:
        {"result": "[main 1a2b3c4] message\\n ...", "cwd": null}
    """
    workdir = service.resolve(body.cwd)
    result = await git.git_commit(service.root, workdir, body.message, body.files)
    return {"result": result, "cwd": body.cwd}
