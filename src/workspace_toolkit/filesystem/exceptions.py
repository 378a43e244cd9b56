"""
Exceptions for workspace filesystem operations.

Every exception carries an ``ErrorKind`` so the workspace facade can turn
it into a structured result without inspecting the class hierarchy.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a failed filesystem operation."""

    INVALID_PATTERN = "invalid_pattern"
    INVALID_PATH = "invalid_path"
    INVALID_OPTIONS = "invalid_options"
    NOT_FOUND = "not_found"
    NOT_A_DIRECTORY = "not_a_directory"
    NOT_A_FILE = "not_a_file"
    PATH_ESCAPE = "path_escape"
    ACCESS_DENIED = "access_denied"
    SIZE_LIMIT = "size_limit"
    EDIT_FAILED = "edit_failed"
    SEARCH_BACKEND_ERROR = "search_backend_error"
    SEARCH_BACKEND_MISSING = "search_backend_missing"
    UNEXPECTED = "unexpected"


class FileSystemError(Exception):
    """Base exception for filesystem operations."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class FileAccessDeniedError(FileSystemError):
    """Raised when access to a file or directory is denied."""

    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, path: str, reason: str = "Access denied"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class FileSizeLimitExceededError(FileSystemError):
    """Raised when a file exceeds the size limit."""

    kind = ErrorKind.SIZE_LIMIT

    def __init__(self, path: str, size: int, limit: int):
        self.path = path
        self.size = size
        self.limit = limit
        super().__init__(f"File too large ({size} bytes > {limit} bytes): {path}")


class InvalidPathError(FileSystemError):
    """Raised when a path is invalid or malformed."""

    kind = ErrorKind.INVALID_PATH

    def __init__(self, path: str, reason: str = "Invalid path"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}" if path else reason)


class PathEscapeError(FileSystemError):
    """Raised when a path resolves outside the workspace root."""

    kind = ErrorKind.PATH_ESCAPE

    def __init__(
        self,
        path: str,
        message: str = "Path traversal detected: path must be within workspace",
    ):
        self.path = path
        super().__init__(message)


class PathNotFoundError(FileSystemError):
    """Raised when a file or directory does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, path: str, reason: str = "File not found"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class DirectoryRequiredError(FileSystemError):
    """Raised when a directory was expected but something else was found."""

    kind = ErrorKind.NOT_A_DIRECTORY

    def __init__(self, path: str, reason: str = "Not a directory"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class FileRequiredError(FileSystemError):
    """Raised when a regular file was expected but something else was found."""

    kind = ErrorKind.NOT_A_FILE

    def __init__(self, path: str, reason: str = "Path is not a file"):
        self.path = path
        self.reason = reason
        super().__init__(f"{reason}: {path}")


class InvalidPatternError(FileSystemError):
    """Raised when a glob or regex pattern is missing or malformed."""

    kind = ErrorKind.INVALID_PATTERN


class EditError(FileSystemError):
    """Raised when an edit cannot be applied to a file."""

    kind = ErrorKind.EDIT_FAILED


class SearchError(FileSystemError):
    """Raised when a search operation fails."""

    kind = ErrorKind.SEARCH_BACKEND_ERROR

    def __init__(self, message: str, *, exit_code: Optional[int] = None):
        self.exit_code = exit_code
        super().__init__(message)


class SearchBackendMissingError(SearchError):
    """Raised when the search backend executable cannot be launched."""

    kind = ErrorKind.SEARCH_BACKEND_MISSING
