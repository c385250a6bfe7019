"""File download and directory listing endpoints"""

import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import FileResponse, JSONResponse

from ..dep import FsLimitDep, WorkspaceDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Files"])


@router.get("/files/{file_path:path}")
async def download_file(file_path: str, service: WorkspaceDep):
    """Serve a workspace file verbatim

    Errors:
        403: Path escapes the workspace
        404: {"error": "File not found"} (also for directories)
    """
    target = service.resolve(file_path)

    if not target.is_file():
        return JSONResponse(status_code=404, content={"error": "File not found"})

    return FileResponse(target)


@router.get("/api/files")
async def list_files(
    service: WorkspaceDep,
    fs_limit: FsLimitDep,
    path: str = "",
    recursive: bool = False,
):
    """List a directory (optionally the whole subtree)

    Response:
        {"items": [{"name", "path", "type", "size", "modifiedAt"}, ...]}
    """
    async with fs_limit:
        items = await asyncio.to_thread(service.list_directory, path, recursive)

    return {"items": [item.model_dump(by_alias=True) for item in items]}
