"""Custom exceptions for the workspace daemon"""


class WorkspaceException(Exception):
    """Base exception for all workspace daemon errors

    All custom exceptions should inherit from this class.
    Socket handlers turn it into an ``error`` event, the HTTP facade
    turns it into a JSON body with ``status_code``.

    Attributes:
        message: Human-readable error message
        code: Error code for client-side error handling
        status_code: HTTP status used by the REST facade
    """

    status_code: int = 500

    def __init__(self, message: str, code: str):
        """Initialize workspace exception

        Args:
            message: Human-readable error message
            code: Error code (e.g., "ACCESS_DENIED", "NOT_FOUND")
        """
        self.message = message
        self.code = code
        super().__init__(message)


class AccessDeniedError(WorkspaceException):
    """Path escapes the workspace root

    Raised before any filesystem or process side effect happens.

    Examples:
        - ``../../etc/passwd``
        - ``/etc/passwd`` given as an absolute path
        - a symlink inside the workspace pointing outside of it
    """

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, "ACCESS_DENIED")


class NotFoundError(WorkspaceException):
    """Path passed the guard but the target does not exist

    Examples:
        - Reading a file that was deleted
        - Writing into a directory that does not exist
        - Renaming a missing source
    """

    status_code = 404

    def __init__(self, message: str):
        super().__init__(message, "NOT_FOUND")


class InvalidOperationError(WorkspaceException):
    """Operation not allowed on this target

    Examples:
        - Deleting a directory without the recursive flag
        - Reading a directory as a file
        - Invalid include/exclude regular expression
    """

    def __init__(self, message: str):
        super().__init__(message, "INVALID_OPERATION")


class ProcessSpawnError(WorkspaceException):
    """Shell, PTY or child process could not be started

    Examples:
        - Configured shell binary does not exist
        - fork() failed
    """

    def __init__(self, message: str):
        super().__init__(message, "PROCESS_SPAWN_FAILED")


class InternalError(WorkspaceException):
    """Unexpected error surfaced with its raw message

    Examples:
        - Permission denied by the operating system
        - Disk full while writing
    """

    def __init__(self, message: str):
        super().__init__(message, "INTERNAL_ERROR")
