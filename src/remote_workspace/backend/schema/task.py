"""Task and git schemas"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RunTaskRequest(BaseModel):
    """Payload of the ``run-task`` event and ``POST /api/tasks/run``"""
    command: str = Field(..., min_length=1, description="Shell command line")
    cwd: Optional[str] = Field(None, description="Working directory relative to the workspace root")
    background: bool = Field(False, description="Launch detached and return the pid")


class GitStatusRequest(BaseModel):
    """Payload of the ``git-status`` event"""
    cwd: Optional[str] = None


class GitCommitRequest(BaseModel):
    """Payload of the ``git-commit`` event and ``POST /api/git/commit``"""
    message: str = Field(..., min_length=1, description="Commit message")
    files: list[str] = Field(default_factory=list, description="Paths to stage before committing")
    cwd: Optional[str] = None


class CommandResult(BaseModel):
    """Outcome of one command run to completion"""
    model_config = ConfigDict(populate_by_name=True)

    stdout: str = ""
    stderr: str = ""
    exit_code: int = Field(0, alias="exitCode")
