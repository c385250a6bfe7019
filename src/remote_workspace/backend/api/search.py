"""Text search endpoint"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter

from ..dep import FsLimitDep, WorkspaceDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Search"])


@router.get("/search")
async def search(
    service: WorkspaceDep,
    fs_limit: FsLimitDep,
    query: str = "",
    include: Optional[str] = None,
    exclude: Optional[str] = None,
    cwd: Optional[str] = None,
):
    """Literal substring search over file contents

    Response:
        {
          "query": "TODO",
          "results": [{"file": "src/a.py", "matches": [{"line", "content", "preview"}]}],
          "cwd": null
        }
    """
    async with fs_limit:
        results = await asyncio.to_thread(
            service.search_files, query, include, exclude, cwd
        )

    return {
        "query": query,
        "results": [r.model_dump() for r in results],
        "cwd": cwd,
    }
