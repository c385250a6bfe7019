"""Workspace file management service"""
import base64
import codecs
import logging
import os
import re
import shutil
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from ..exception import (
    InternalError,
    InvalidOperationError,
    NotFoundError,
)
from ..schema.workspace import DirectoryEntry, FileMatches, LineMatch
from .guard import guard, is_within

logger = logging.getLogger(__name__)

# Characters of context kept on each side of a search hit
PREVIEW_CONTEXT = 20

# Encodings that carry bytes rather than text
BYTE_ENCODINGS = {"base64", "hex"}

# Buffer encoding names without a Python codec of the same name
ENCODING_ALIASES = {
    "binary": "latin-1",
    "ucs2": "utf-16-le",
    "ucs-2": "utf-16-le",
    "utf16le": "utf-16-le",
}


def normalize_encoding(encoding: Optional[str]) -> str:
    """Map a client encoding name ("utf8", "latin1", "base64") to a codec name

    Raises:
        InvalidOperationError: If the encoding is unknown
    """
    name = (encoding or "utf8").strip().lower()
    if name in BYTE_ENCODINGS:
        return name
    name = ENCODING_ALIASES.get(name, name)
    try:
        return codecs.lookup(name).name
    except LookupError:
        raise InvalidOperationError(f"Unknown encoding: {encoding}")


def match_lines(text: str, query: str) -> list[LineMatch]:
    """Find every line containing ``query`` as a literal substring

    The preview window is built around the first occurrence on the line.
    An empty query matches nothing.
    """
    if not query:
        return []

    matches: list[LineMatch] = []
    for number, line in enumerate(text.split("\n"), start=1):
        index = line.find(query)
        if index == -1:
            continue
        matches.append(LineMatch(
            line=number,
            content=line.strip(),
            preview=line[max(0, index - PREVIEW_CONTEXT):index + len(query) + PREVIEW_CONTEXT],
        ))
    return matches


def iso_timestamp(timestamp: Optional[float] = None) -> str:
    """UTC ISO 8601 with milliseconds and a trailing Z (now if no timestamp)"""
    if timestamp is None:
        moment = datetime.now(timezone.utc)
    else:
        moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _compile(pattern: Optional[str], label: str) -> Optional[re.Pattern]:
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidOperationError(f"Invalid {label} pattern: {e}")


@contextmanager
def _os_errors(display: str) -> Iterator[None]:
    """Translate OSError into the daemon's error taxonomy"""
    try:
        yield
    except FileNotFoundError as e:
        raise NotFoundError(f"No such file or directory: {display}") from e
    except IsADirectoryError as e:
        raise InvalidOperationError(f"Is a directory: {display}") from e
    except NotADirectoryError as e:
        raise InvalidOperationError(f"Not a directory: {display}") from e
    except OSError as e:
        raise InternalError(f"{e.strerror or e}: {display}") from e


class WorkspaceService:
    """File operations confined to one workspace root

    Every public method guards its path arguments first and only then touches
    the filesystem. All methods are blocking; async callers run them in a
    worker thread.
    """

    def __init__(self, root: Path):
        """
        Args:
            root: Canonical workspace root (already resolved)
        """
        self.root = root

    def resolve(self, path: Optional[str], *, follow_symlinks: bool = True) -> Path:
        """Guard a client path against this workspace's root"""
        return guard(self.root, path, follow_symlinks=follow_symlinks)

    # ==================== File CRUD ====================

    def read_file(self, path: str, encoding: str = "utf8") -> str:
        """Read file content

        Raises:
            AccessDeniedError: Path outside workspace
            NotFoundError: File does not exist
            InvalidOperationError: Target is a directory or encoding unknown
        """
        codec = normalize_encoding(encoding)
        target = self.resolve(path)

        with _os_errors(path):
            data = target.read_bytes()

        if codec == "base64":
            return base64.b64encode(data).decode("ascii")
        if codec == "hex":
            return data.hex()
        return data.decode(codec, errors="replace")

    def write_file(self, path: str, content: str, encoding: str = "utf8") -> None:
        """Overwrite a file; parent directories must already exist

        Raises:
            AccessDeniedError: Path outside workspace
            NotFoundError: Parent directory does not exist
            InvalidOperationError: Target is a directory or encoding unknown
        """
        codec = normalize_encoding(encoding)
        target = self.resolve(path)

        if target.is_dir():
            raise InvalidOperationError(f"Is a directory: {path}")
        if not target.parent.is_dir():
            raise NotFoundError(f"Parent directory does not exist: {path}")

        data = self._encode(content, codec)
        with _os_errors(path):
            target.write_bytes(data)

        logger.debug(f"Wrote {len(data)} bytes to {target}")

    def create_file(self, path: str, content: str = "") -> None:
        """Create a file, creating missing parent directories

        Re-creating an existing file overwrites it.
        """
        target = self.resolve(path)

        if target == self.root or target.is_dir():
            raise InvalidOperationError(f"Is a directory: {path}")

        with _os_errors(path):
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content.encode("utf-8"))

        logger.debug(f"Created file {target}")

    def delete_file(self, path: str, recursive: bool = False) -> None:
        """Delete a file, or a directory tree when ``recursive`` is set

        Raises:
            NotFoundError: Target does not exist
            InvalidOperationError: Directory without ``recursive``, or the root
        """
        target = self.resolve(path, follow_symlinks=False)

        if target == self.root:
            raise InvalidOperationError("Cannot delete the workspace root")

        if not os.path.lexists(target):
            raise NotFoundError(f"No such file or directory: {path}")

        with _os_errors(path):
            if target.is_dir() and not target.is_symlink():
                if not recursive:
                    raise InvalidOperationError("Cannot delete directory without recursive flag")
                shutil.rmtree(target)
            else:
                target.unlink()

        logger.info(f"Deleted {target} (recursive={recursive})")

    def rename_file(self, old_path: str, new_path: str) -> None:
        """Move a file or directory; both endpoints are guarded independently

        Destination parent directories are created as needed.
        """
        source = self.resolve(old_path, follow_symlinks=False)
        destination = self.resolve(new_path, follow_symlinks=False)

        if source == self.root or destination == self.root:
            raise InvalidOperationError("Cannot rename the workspace root")

        if not os.path.lexists(source):
            raise NotFoundError(f"No such file or directory: {old_path}")

        with _os_errors(new_path):
            destination.parent.mkdir(parents=True, exist_ok=True)
            source.rename(destination)

        logger.info(f"Renamed {source} -> {destination}")

    @staticmethod
    def _encode(content: str, codec: str) -> bytes:
        if codec == "base64":
            try:
                return base64.b64decode(content, validate=True)
            except ValueError:
                raise InvalidOperationError("Content is not valid base64")
        if codec == "hex":
            try:
                return bytes.fromhex(content)
            except ValueError:
                raise InvalidOperationError("Content is not valid hex")
        return content.encode(codec)

    # ==================== Listing ====================

    def list_directory(self, path: str = "", recursive: bool = False) -> list[DirectoryEntry]:
        """List directory contents, optionally the whole subtree

        The walk is guarded once at its root. Paths in the result are relative
        to the listed directory. Symlinked directories are reported but never
        descended into.

        Raises:
            NotFoundError: Directory does not exist
            InvalidOperationError: Target is not a directory
        """
        target = self.resolve(path)

        if not target.exists():
            raise NotFoundError(f"Directory not found: {path}")
        if not target.is_dir():
            raise InvalidOperationError(f"Not a directory: {path}")

        items: list[DirectoryEntry] = []
        with _os_errors(path):
            self._walk(target, "", recursive, items, top_level=True)
        return items

    def _walk(
        self,
        directory: Path,
        relative: str,
        recursive: bool,
        items: list[DirectoryEntry],
        top_level: bool = False,
    ) -> None:
        try:
            entries = self._sorted_entries(directory)
        except OSError as e:
            if top_level:
                raise
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            return

        for entry in entries:
            entry_relative = f"{relative}/{entry.name}" if relative else entry.name
            try:
                stat = entry.stat()
            except OSError:
                # Broken symlink
                stat = entry.stat(follow_symlinks=False)

            is_dir = entry.is_dir()
            items.append(DirectoryEntry(
                name=entry.name,
                path=entry_relative,
                type="directory" if is_dir else "file",
                size=0 if is_dir else stat.st_size,
                modified_at=iso_timestamp(stat.st_mtime),
            ))

            if recursive and is_dir and not entry.is_symlink():
                self._walk(Path(entry.path), entry_relative, recursive, items)

    @staticmethod
    def _sorted_entries(directory: Path) -> list[os.DirEntry]:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: (not e.is_dir(), e.name))

    # ==================== Search ====================

    def search_files(
        self,
        query: str,
        include: Optional[str] = None,
        exclude: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> list[FileMatches]:
        """Search file contents for a literal substring

        Entry names (files and directories alike) are filtered with the
        include/exclude regular expressions. Files that cannot be decoded as
        UTF-8 or read at all are skipped. Files without matches are omitted.

        Raises:
            NotFoundError: Search directory does not exist
            InvalidOperationError: Invalid regex, or cwd is not a directory
        """
        base = self.resolve(cwd)
        include_re = _compile(include, "include")
        exclude_re = _compile(exclude, "exclude")

        if not base.exists():
            raise NotFoundError(f"Directory not found: {cwd}")
        if not base.is_dir():
            raise InvalidOperationError(f"Not a directory: {cwd}")

        results: list[FileMatches] = []
        if not query:
            return results

        self._search_dir(base, "", query, include_re, exclude_re, results)
        logger.debug(f"Search for {query!r} in {base}: {len(results)} files matched")
        return results

    def _search_dir(
        self,
        directory: Path,
        relative: str,
        query: str,
        include_re: Optional[re.Pattern],
        exclude_re: Optional[re.Pattern],
        results: list[FileMatches],
    ) -> None:
        try:
            entries = self._sorted_entries(directory)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory {directory}: {e}")
            return

        for entry in entries:
            if include_re and not include_re.search(entry.name):
                continue
            if exclude_re and exclude_re.search(entry.name):
                continue

            entry_relative = f"{relative}/{entry.name}" if relative else entry.name
            entry_path = Path(entry.path)

            if entry.is_symlink():
                if entry.is_dir() or not is_within(self.root, entry_path.resolve()):
                    continue

            if entry.is_dir():
                self._search_dir(entry_path, entry_relative, query, include_re, exclude_re, results)
            elif entry.is_file():
                try:
                    text = entry_path.read_bytes().decode("utf-8")
                except (OSError, UnicodeDecodeError):
                    continue

                matches = match_lines(text, query)
                if matches:
                    results.append(FileMatches(file=entry_relative, matches=matches))
