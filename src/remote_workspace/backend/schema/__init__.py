"""
Schemas for socket event payloads and REST bodies.
"""

from .workspace import (
    ReadFileRequest,
    WriteFileRequest,
    CreateFileRequest,
    DeleteFileRequest,
    RenameFileRequest,
    ListDirectoryRequest,
    SearchFilesRequest,
    DirectoryEntry,
    LineMatch,
    FileMatches,
)
from .terminal import (
    CreateTerminalRequest,
    TerminalInputRequest,
    ResizeTerminalRequest,
    CloseTerminalRequest,
)
from .task import (
    RunTaskRequest,
    GitStatusRequest,
    GitCommitRequest,
    CommandResult,
)

__all__ = [
    "ReadFileRequest",
    "WriteFileRequest",
    "CreateFileRequest",
    "DeleteFileRequest",
    "RenameFileRequest",
    "ListDirectoryRequest",
    "SearchFilesRequest",
    "DirectoryEntry",
    "LineMatch",
    "FileMatches",
    "CreateTerminalRequest",
    "TerminalInputRequest",
    "ResizeTerminalRequest",
    "CloseTerminalRequest",
    "RunTaskRequest",
    "GitStatusRequest",
    "GitCommitRequest",
    "CommandResult",
]
