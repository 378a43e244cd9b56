"""
Data models for workspace filesystem operations.

This module defines Pydantic models for operation results, directory
entries, grep options and the three grep output shapes.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, Literal, Optional, TypeVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from workspace_toolkit.filesystem.exceptions import ErrorKind, FileSystemError

T = TypeVar("T")


class OperationResult(BaseModel, Generic[T]):
    """Outcome of a workspace operation: either data or an error message."""

    success: bool = Field(description="Whether the operation succeeded")
    data: Optional[T] = Field(default=None, description="Operation payload")
    error: Optional[str] = Field(default=None, description="Human-readable error")
    error_kind: Optional[ErrorKind] = Field(default=None, description="Error category")

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls, error: Union[str, FileSystemError], kind: Optional[ErrorKind] = None
    ) -> "OperationResult":
        if isinstance(error, FileSystemError):
            return cls(success=False, error=error.message, error_kind=kind or error.kind)
        return cls(success=False, error=error, error_kind=kind or ErrorKind.UNEXPECTED)


class FileInfo(BaseModel):
    """A single directory entry."""

    name: str = Field(description="Entry name")
    path: str = Field(description="Path relative to the workspace root")
    is_directory: bool = Field(description="Whether the entry is a directory")
    size: int = Field(description="Size in bytes")
    modified_time: datetime = Field(description="Last modification time")


class OutputMode(str, Enum):
    """Shape of the data returned by grep."""

    CONTENT = "content"
    FILES_WITH_MATCHES = "files_with_matches"
    COUNT = "count"


class GrepOptions(BaseModel):
    """
    Options for a grep call.

    Short aliases (``-i``, ``-n``, ``-B``, ``-A``, ``-C``) and camelCase names
    (``caseInsensitive``, ``headLimit``, ...) are accepted so tool arguments
    coming from an agent can be validated directly.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    pattern: str = Field(description="Regular expression to search for")
    path: Optional[str] = Field(
        default=None, description="File or directory to search in (default: workspace root)"
    )
    glob: Optional[str] = Field(
        default=None, description='Glob pattern to filter files (e.g. "*.js")'
    )
    type: Optional[str] = Field(
        default=None, description='File type to search (e.g. "js", "py", "rust")'
    )
    output_mode: OutputMode = Field(
        default=OutputMode.FILES_WITH_MATCHES,
        description='"content", "files_with_matches" or "count"',
    )
    case_insensitive: bool = Field(
        default=False,
        validation_alias=AliasChoices("-i", "caseInsensitive"),
        serialization_alias="-i",
        description="Case insensitive search",
    )
    show_line_numbers: bool = Field(
        default=True,
        validation_alias=AliasChoices("-n", "showLineNumbers"),
        serialization_alias="-n",
        description="Include match columns (content mode)",
    )
    context_before: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("-B", "contextBefore"),
        serialization_alias="-B",
        description="Lines to show before each match",
    )
    context_after: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("-A", "contextAfter"),
        serialization_alias="-A",
        description="Lines to show after each match",
    )
    context_around: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("-C", "contextAround"),
        serialization_alias="-C",
        description="Lines to show before and after each match",
    )
    head_limit: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("head_limit", "headLimit"),
        description="Maximum number of matches per file",
    )
    multiline: bool = Field(
        default=False, description="Allow patterns to span lines"
    )

    @property
    def before_window(self) -> int:
        if self.context_around is not None:
            return self.context_around
        return self.context_before or 0

    @property
    def after_window(self) -> int:
        if self.context_around is not None:
            return self.context_around
        return self.context_after or 0


class GrepMatch(BaseModel):
    """A specific match within a file."""

    model_config = ConfigDict(populate_by_name=True)

    line: int = Field(ge=1, description="1-based line number")
    content: str = Field(description="Matched line, trailing whitespace removed")
    column: Optional[int] = Field(
        default=None, ge=1, description="1-based column of the first submatch"
    )
    before_context: Optional[list[str]] = Field(
        default=None, serialization_alias="beforeContext"
    )
    after_context: Optional[list[str]] = Field(
        default=None, serialization_alias="afterContext"
    )


class GrepFileMatches(BaseModel):
    """All matches found in one file."""

    path: str = Field(description="Path relative to the workspace root")
    matches: list[GrepMatch] = Field(default_factory=list)


class GrepCount(BaseModel):
    """Number of matching lines in one file."""

    path: str = Field(description="Path relative to the workspace root")
    count: int = Field(ge=1, description="Number of matches")


class ContentResult(BaseModel):
    mode: Literal[OutputMode.CONTENT] = OutputMode.CONTENT
    data: list[GrepFileMatches] = Field(default_factory=list)


class FilesWithMatchesResult(BaseModel):
    mode: Literal[OutputMode.FILES_WITH_MATCHES] = OutputMode.FILES_WITH_MATCHES
    data: list[str] = Field(default_factory=list)


class CountResult(BaseModel):
    mode: Literal[OutputMode.COUNT] = OutputMode.COUNT
    data: list[GrepCount] = Field(default_factory=list)


GrepResult = Union[ContentResult, FilesWithMatchesResult, CountResult]
