"""Workspace file and search schemas"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ==================== Request Payloads ====================

class ReadFileRequest(BaseModel):
    """Payload of the ``read-file`` event"""
    path: str = Field(..., description="Path relative to the workspace root")
    encoding: str = Field("utf8", description="Text encoding")


class WriteFileRequest(BaseModel):
    """Payload of the ``write-file`` event"""
    path: str = Field(..., description="Path relative to the workspace root")
    content: str = Field(..., description="New file content")
    encoding: str = Field("utf8", description="Text encoding")


class CreateFileRequest(BaseModel):
    """Payload of the ``create-file`` event"""
    path: str = Field(..., description="Path relative to the workspace root")
    content: str = Field("", description="Initial file content")


class DeleteFileRequest(BaseModel):
    """Payload of the ``delete-file`` event"""
    path: str = Field(..., description="Path relative to the workspace root")
    recursive: bool = Field(False, description="Required to delete directories")


class RenameFileRequest(BaseModel):
    """Payload of the ``rename-file`` event"""
    model_config = ConfigDict(populate_by_name=True)

    old_path: str = Field(..., alias="oldPath")
    new_path: str = Field(..., alias="newPath")


class ListDirectoryRequest(BaseModel):
    """Payload of the ``list-directory`` event"""
    path: str = Field("", description="Directory relative to the workspace root")
    recursive: bool = Field(False, description="Walk the whole subtree")


class SearchFilesRequest(BaseModel):
    """Payload of the ``search-files`` event"""
    query: str = Field(..., description="Literal substring to look for")
    include: Optional[str] = Field(None, description="Regex entry names must match")
    exclude: Optional[str] = Field(None, description="Regex entry names must not match")
    cwd: Optional[str] = Field(None, description="Directory to search from")


# ==================== Result Models ====================

class DirectoryEntry(BaseModel):
    """File or directory entry in a listing"""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="File or directory name")
    path: str = Field(..., description="Path relative to the listed directory")
    type: Literal["file", "directory"] = Field(..., description="Entry type")
    size: int = Field(..., description="Size in bytes")
    modified_at: str = Field(..., alias="modifiedAt", description="Last modified timestamp (ISO 8601)")


class LineMatch(BaseModel):
    """One matching line inside a file"""
    line: int = Field(..., description="1-based line number")
    content: str = Field(..., description="Trimmed line text")
    preview: str = Field(..., description="Query with up to 20 characters of context on each side")


class FileMatches(BaseModel):
    """All matching lines of one file"""
    file: str = Field(..., description="Path relative to the search directory")
    matches: list[LineMatch] = Field(default_factory=list)
