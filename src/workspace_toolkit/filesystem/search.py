"""
Grep over the workspace with structured results.

Raw scanning is delegated to a line-search backend (ripgrep by default).
This module validates the request, streams the backend's output into one
of three builders and returns a mode-tagged result:

    files_with_matches  ->  FilesWithMatchesResult (list of paths)
    count               ->  CountResult (path + number of matches)
    content             ->  ContentResult (per-file matches with context)
"""

import asyncio
import base64
import bisect
import json
import logging
import re
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from workspace_toolkit.filesystem.backend import SearchBackend, SearchRequest, create_backend
from workspace_toolkit.filesystem.config import FileSystemConfig
from workspace_toolkit.filesystem.exceptions import InvalidPatternError, SearchError
from workspace_toolkit.filesystem.models import (
    ContentResult,
    CountResult,
    FilesWithMatchesResult,
    GrepCount,
    GrepFileMatches,
    GrepMatch,
    GrepOptions,
    GrepResult,
    OutputMode,
)
from workspace_toolkit.filesystem.paths import resolve, to_relative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BeginEvent:
    """Backend started reporting on a file."""

    path: str


@dataclass(frozen=True)
class MatchEvent:
    """A matching line (or lines, in multiline mode)."""

    path: str
    line_number: int
    text: str
    column: int
    absolute_offset: Optional[int] = None


@dataclass(frozen=True)
class ContextEvent:
    """A non-matching line reported for context."""

    path: str
    line_number: int
    text: str


RawSearchEvent = Union[BeginEvent, MatchEvent, ContextEvent]


def parse_event(raw: str) -> Optional[RawSearchEvent]:
    """
    Parse one line of ripgrep ``--json`` output.

    Returns None for blank or malformed lines and for record types that
    carry nothing we report (``end``, ``summary``).
    """
    try:
        record = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(record, dict):
        return None

    kind = record.get("type")
    data = record.get("data")
    if not isinstance(data, dict):
        return None

    path = _text_field(data.get("path"))
    if path is None:
        return None
    if kind == "begin":
        return BeginEvent(path=path)
    if kind not in ("match", "context"):
        return None

    text = _text_field(data.get("lines"))
    line_number = data.get("line_number")
    if text is None or not isinstance(line_number, int) or line_number < 1:
        return None

    if kind == "context":
        return ContextEvent(path=path, line_number=line_number, text=text)

    column = 1
    submatches = data.get("submatches") or []
    if submatches and isinstance(submatches[0], dict):
        start = submatches[0].get("start")
        if isinstance(start, int) and start >= 0:
            column = _char_column(text, start)

    offset = data.get("absolute_offset")
    return MatchEvent(
        path=path,
        line_number=line_number,
        text=text,
        column=column,
        absolute_offset=offset if isinstance(offset, int) else None,
    )


def _text_field(value: Any) -> Optional[str]:
    # ripgrep sends {"text": ...} for UTF-8 data and {"bytes": <base64>} otherwise.
    if not isinstance(value, dict):
        return None
    if isinstance(value.get("text"), str):
        return value["text"]
    if isinstance(value.get("bytes"), str):
        try:
            return base64.b64decode(value["bytes"]).decode("utf-8", errors="replace")
        except ValueError:
            return None
    return None


def _char_column(text: str, byte_offset: int) -> int:
    """Convert a byte offset into ``text`` to a 1-based character column."""
    prefix = text.encode("utf-8")[:byte_offset]
    return len(prefix.decode("utf-8", errors="ignore")) + 1


class _FilesBuilder:
    def __init__(self, root: Path):
        self.root = root
        self.paths: dict[str, None] = {}

    def feed(self, line: str) -> None:
        if not line.strip():
            return
        self.paths.setdefault(to_relative(self.root, line), None)

    def build(self) -> FilesWithMatchesResult:
        return FilesWithMatchesResult(data=list(self.paths))


class _CountBuilder:
    def __init__(self, root: Path, head_limit: Optional[int] = None):
        self.root = root
        self.head_limit = head_limit
        self.counts: dict[str, int] = {}

    def feed(self, line: str) -> None:
        # Paths may contain ":" themselves, so split on the last one.
        path, sep, count_text = line.rpartition(":")
        count_text = count_text.strip()
        if not sep or not path or not (count_text.isascii() and count_text.isdigit()):
            logger.debug(f"Skipping unparsable count line: {line!r}")
            return

        count = int(count_text)
        if self.head_limit is not None:
            count = min(count, self.head_limit)
        if count <= 0:
            return

        relative = to_relative(self.root, path)
        self.counts[relative] = self.counts.get(relative, 0) + count

    def build(self) -> CountResult:
        return CountResult(
            data=[GrepCount(path=path, count=count) for path, count in self.counts.items()]
        )


@dataclass
class _PendingMatch:
    line: int
    end_line: int
    content: str
    column: Optional[int]
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)


@dataclass
class _FileGroup:
    path: str
    matches: list[_PendingMatch] = field(default_factory=list)
    context: list[tuple[int, str]] = field(default_factory=list)


class _ContentBuilder:
    def __init__(self, root: Path, options: GrepOptions):
        self.root = root
        self.head_limit = options.head_limit
        self.show_columns = options.show_line_numbers
        self.before = options.before_window
        self.after = options.after_window
        self.groups: dict[str, _FileGroup] = {}

    def feed(self, line: str) -> None:
        event = parse_event(line)
        if event is None:
            return

        group = self._group(event.path)
        if isinstance(event, MatchEvent):
            if self.head_limit is not None and len(group.matches) >= self.head_limit:
                return
            content = event.text.rstrip()
            group.matches.append(
                _PendingMatch(
                    line=event.line_number,
                    end_line=event.line_number + content.count("\n"),
                    content=content,
                    column=event.column if self.show_columns else None,
                )
            )
        elif isinstance(event, ContextEvent):
            group.context.append((event.line_number, event.text.rstrip()))

    def _group(self, path: str) -> _FileGroup:
        relative = to_relative(self.root, path)
        if relative not in self.groups:
            self.groups[relative] = _FileGroup(path=relative)
        return self.groups[relative]

    def build(self) -> ContentResult:
        results = []
        for group in self.groups.values():
            if not group.matches:
                continue
            self._attach_context(group)
            results.append(
                GrepFileMatches(
                    path=group.path,
                    matches=[
                        GrepMatch(
                            line=m.line,
                            content=m.content,
                            column=m.column,
                            before_context=m.before if self.before > 0 else None,
                            after_context=m.after if self.after > 0 else None,
                        )
                        for m in group.matches
                    ],
                )
            )
        return ContentResult(data=results)

    def _attach_context(self, group: _FileGroup) -> None:
        """
        Give each context line to the nearest match whose window holds it.

        A line can be after-context of the preceding match or
        before-context of the following one; ties go to the preceding
        match. Lines outside every window are dropped.
        """
        matches = sorted(group.matches, key=lambda m: m.line)
        starts = [m.line for m in matches]

        for line_number, text in sorted(group.context):
            index = bisect.bisect_right(starts, line_number)
            previous = matches[index - 1] if index > 0 else None
            following = matches[index] if index < len(matches) else None

            if previous is not None and previous.end_line >= line_number:
                continue

            after_distance = None
            if previous is not None and 0 < line_number - previous.end_line <= self.after:
                after_distance = line_number - previous.end_line
            before_distance = None
            if following is not None and 0 < following.line - line_number <= self.before:
                before_distance = following.line - line_number

            if after_distance is not None and (
                before_distance is None or after_distance <= before_distance
            ):
                previous.after.append(text)
            elif before_distance is not None:
                following.before.append(text)


class SearchReconciler:
    """
    Grep the workspace through a pluggable line-search backend.

    Usage:
        reconciler = SearchReconciler(Path("/tmp/workspace"))
        result = await reconciler.search(
            GrepOptions(pattern="def main", output_mode="content", **{"-C": 2})
        )
        for file in result.data:
            print(file.path, [m.line for m in file.matches])
    """

    def __init__(
        self,
        root: Path,
        config: Optional[FileSystemConfig] = None,
        backend: Optional[SearchBackend] = None,
    ):
        self.root = Path(root).expanduser().resolve()
        self.config = config or FileSystemConfig()
        self.backend = backend or create_backend(self.config)

    async def search(self, options: GrepOptions) -> GrepResult:
        """
        Run a search and reconcile the backend output.

        Args:
            options: Pattern and search options

        Returns:
            ContentResult, FilesWithMatchesResult or CountResult

        Raises:
            InvalidPatternError: If the pattern is empty or not a valid regex
            PathEscapeError: If the search path leaves the workspace
            SearchError: If the backend fails or times out
        """
        if not options.pattern:
            raise InvalidPatternError("pattern is required")
        self._validate_regex(options)

        search_path = resolve(
            self.root, options.path, message="Search path must be within workspace"
        )
        request = SearchRequest(
            pattern=options.pattern,
            search_path=search_path,
            output_mode=options.output_mode,
            case_insensitive=options.case_insensitive,
            multiline=options.multiline,
            context_before=options.context_before or 0,
            context_after=options.context_after or 0,
            context_around=options.context_around,
            glob=options.glob,
            file_type=options.type,
            max_count=options.head_limit,
        )

        if options.output_mode == OutputMode.FILES_WITH_MATCHES:
            builder = _FilesBuilder(self.root)
        elif options.output_mode == OutputMode.COUNT:
            builder = _CountBuilder(self.root, options.head_limit)
        else:
            builder = _ContentBuilder(self.root, options)

        timeout = self.config.search_timeout_seconds
        try:
            await asyncio.wait_for(self._consume(request, builder), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error(f"grep timed out after {timeout}s")
            raise SearchError(f"Search timed out after {timeout} seconds")

        result = builder.build()
        logger.info(
            f"grep {options.pattern!r} ({options.output_mode.value}) "
            f"found matches in {len(result.data)} files"
        )
        return result

    async def _consume(self, request: SearchRequest, builder) -> None:
        async with aclosing(self.backend.run(request)) as lines:
            async for line in lines:
                builder.feed(line)

    @staticmethod
    def _validate_regex(options: GrepOptions) -> None:
        flags = re.IGNORECASE if options.case_insensitive else 0
        if options.multiline:
            flags |= re.MULTILINE | re.DOTALL
        try:
            re.compile(options.pattern, flags)
        except re.error as e:
            raise InvalidPatternError(f"Invalid regex pattern: {e}")
