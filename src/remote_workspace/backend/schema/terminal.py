"""Terminal event schemas"""
from typing import Optional

from pydantic import BaseModel, Field

# struct winsize holds unsigned shorts
MAX_WINSIZE = 65535


class CreateTerminalRequest(BaseModel):
    """Payload of the ``create-terminal`` event"""
    id: str = Field(..., min_length=1, description="Client-chosen terminal id")
    cols: Optional[int] = Field(None, gt=0, le=MAX_WINSIZE, description="Terminal width")
    rows: Optional[int] = Field(None, gt=0, le=MAX_WINSIZE, description="Terminal height")
    cwd: Optional[str] = Field(None, description="Working directory relative to the workspace root")


class TerminalInputRequest(BaseModel):
    """Payload of the ``terminal-input`` event"""
    id: str
    input: str


class ResizeTerminalRequest(BaseModel):
    """Payload of the ``resize-terminal`` event"""
    id: str
    cols: int = Field(..., gt=0, le=MAX_WINSIZE)
    rows: int = Field(..., gt=0, le=MAX_WINSIZE)


class CloseTerminalRequest(BaseModel):
    """Payload of the ``close-terminal`` event"""
    id: str
