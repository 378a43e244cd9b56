"""
Line-search backends used by grep.

A backend receives a ``SearchRequest`` and streams raw output lines in
ripgrep's formats: one JSON event per line for content mode, one path per
line for files-with-matches mode and ``path:count`` for count mode.
"""

import asyncio
import bisect
import json
import logging
import re
import shlex
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

from workspace_toolkit.filesystem.config import FileSystemConfig, SearchBackendType
from workspace_toolkit.filesystem.exceptions import SearchBackendMissingError, SearchError
from workspace_toolkit.filesystem.matcher import compile_glob, iter_files
from workspace_toolkit.filesystem.models import OutputMode

logger = logging.getLogger(__name__)

# Subset of ripgrep's built-in type definitions.
FILE_TYPES: dict[str, list[str]] = {
    "c": ["*.c", "*.h"],
    "cpp": ["*.cpp", "*.cc", "*.cxx", "*.hpp", "*.hh", "*.hxx", "*.h"],
    "css": ["*.css", "*.scss"],
    "go": ["*.go"],
    "html": ["*.html", "*.htm"],
    "java": ["*.java"],
    "js": ["*.js", "*.jsx", "*.mjs", "*.cjs"],
    "json": ["*.json"],
    "md": ["*.md", "*.markdown"],
    "markdown": ["*.md", "*.markdown"],
    "py": ["*.py", "*.pyi"],
    "rust": ["*.rs"],
    "sh": ["*.sh", "*.bash", "*.zsh"],
    "sql": ["*.sql"],
    "toml": ["*.toml"],
    "ts": ["*.ts", "*.tsx", "*.mts", "*.cts"],
    "txt": ["*.txt"],
    "yaml": ["*.yaml", "*.yml"],
}

BINARY_SNIFF_BYTES = 8192


@dataclass(frozen=True)
class SearchRequest:
    """Everything a backend needs to run one search."""

    pattern: str
    search_path: Path
    output_mode: OutputMode = OutputMode.FILES_WITH_MATCHES
    case_insensitive: bool = False
    multiline: bool = False
    context_before: int = 0
    context_after: int = 0
    context_around: Optional[int] = None
    glob: Optional[str] = None
    file_type: Optional[str] = None
    max_count: Optional[int] = None

    @property
    def before_window(self) -> int:
        return self.context_around if self.context_around is not None else self.context_before

    @property
    def after_window(self) -> int:
        return self.context_around if self.context_around is not None else self.context_after


class SearchBackend(Protocol):
    """Source of raw search output lines."""

    def run(self, request: SearchRequest) -> AsyncIterator[str]: ...


def build_ripgrep_args(request: SearchRequest) -> list[str]:
    """Build ripgrep command line arguments (without the executable)."""
    args: list[str] = []

    if request.output_mode == OutputMode.CONTENT:
        args.append("--json")

    if request.case_insensitive:
        args.append("--ignore-case")

    if request.multiline:
        args.extend(["--multiline", "--multiline-dotall"])

    if request.output_mode == OutputMode.CONTENT:
        if request.context_around is not None:
            args.extend(["-C", str(request.context_around)])
        else:
            if request.context_before:
                args.extend(["-B", str(request.context_before)])
            if request.context_after:
                args.extend(["-A", str(request.context_after)])

    if request.glob:
        args.extend(["--glob", request.glob])

    if request.file_type:
        args.extend(["--type", request.file_type])

    if request.max_count is not None:
        args.extend(["--max-count", str(request.max_count)])

    if request.output_mode == OutputMode.FILES_WITH_MATCHES:
        args.append("--files-with-matches")
    elif request.output_mode == OutputMode.COUNT:
        args.extend(["--count", "--with-filename"])

    args.extend(["--sort", "path"])
    args.extend(["--", request.pattern, str(request.search_path)])
    return args


class RipgrepBackend:
    """
    Run ripgrep as a child process and stream its stdout.

    Exit codes 0 (matches) and 1 (no matches) are both success; anything
    else raises ``SearchError`` with ripgrep's stderr. The child is killed
    if the consumer stops reading early or is cancelled.
    """

    def __init__(self, config: Optional[FileSystemConfig] = None):
        self.config = config or FileSystemConfig()

    async def run(self, request: SearchRequest) -> AsyncIterator[str]:
        cmd = [self.config.ripgrep_path, *build_ripgrep_args(request)]
        logger.debug(f"Running ripgrep: {shlex.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.config.max_line_bytes,
            )
        except FileNotFoundError:
            logger.error(f"ripgrep executable not found: {self.config.ripgrep_path}")
            raise SearchBackendMissingError("ripgrep (rg) is not installed or not in PATH")
        except OSError as e:
            raise SearchError(f"Failed to start ripgrep: {e}")

        # Drain stderr concurrently so a chatty child cannot block on a full pipe.
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            async for raw in self._stdout_lines(proc.stdout):
                yield raw.decode("utf-8", errors="replace").rstrip("\r\n")
            exit_code = await proc.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        if exit_code not in (0, 1):
            logger.error(f"ripgrep exited with code {exit_code}: {stderr}")
            raise SearchError(
                stderr or f"ripgrep exited with code {exit_code}", exit_code=exit_code
            )

    async def _stdout_lines(self, stream: asyncio.StreamReader) -> AsyncIterator[bytes]:
        """
        Yield complete output lines, dropping any longer than ``max_line_bytes``.

        ``readuntil`` leaves overlong data in the buffer, so it is discarded
        here piece by piece up to and including the next newline.
        """
        oversized = False
        while True:
            try:
                raw = await stream.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                if e.partial and not oversized:
                    yield e.partial
                return
            except asyncio.LimitOverrunError as e:
                if not oversized:
                    logger.warning(
                        f"Skipping ripgrep output line longer than "
                        f"{self.config.max_line_bytes} bytes"
                    )
                    oversized = True
                await stream.read(max(e.consumed, 1))
                continue

            if oversized:
                # Tail of the skipped line.
                oversized = False
                continue
            yield raw


@dataclass(frozen=True)
class _LineMatch:
    first_line: int
    last_line: int
    start: int
    end: int


class PythonSearchBackend:
    """
    Search files in-process with Python's ``re`` module.

    Produces the same output formats as ripgrep so the reconciler cannot
    tell the two apart. Like ripgrep it skips hidden entries and files
    that look binary, and walks directories in path order.
    """

    def __init__(self, config: Optional[FileSystemConfig] = None):
        self.config = config or FileSystemConfig()

    async def run(self, request: SearchRequest) -> AsyncIterator[str]:
        flags = re.IGNORECASE if request.case_insensitive else 0
        if request.multiline:
            flags |= re.MULTILINE | re.DOTALL
        try:
            regex = re.compile(request.pattern, flags)
        except re.error as e:
            raise SearchError(f"regex parse error: {e}", exit_code=2)

        accepts = self._build_filter(request)

        for file_path in self._candidates(request.search_path):
            if not accepts(file_path):
                continue
            lines = self._read_lines(file_path)
            if lines is None:
                continue

            matches = self._find_matches(regex, lines, request)
            if not matches:
                continue

            if request.output_mode == OutputMode.FILES_WITH_MATCHES:
                yield str(file_path)
            elif request.output_mode == OutputMode.COUNT:
                yield f"{file_path}:{len(matches)}"
            else:
                for event in self._content_events(str(file_path), lines, matches, request):
                    yield json.dumps(event)

            # Let cancellation and other tasks in between files.
            await asyncio.sleep(0)

    def _candidates(self, search_path: Path) -> list[Path]:
        if search_path.is_file():
            return [search_path]
        if not search_path.is_dir():
            raise SearchError(
                f"{search_path}: No such file or directory (os error 2)", exit_code=2
            )
        return list(
            iter_files(
                search_path,
                follow_symlinks=self.config.follow_symlinks,
                include_hidden=False,
            )
        )

    def _build_filter(self, request: SearchRequest):
        base = request.search_path
        checks = []

        if request.glob:
            negate = request.glob.startswith("!")
            glob = request.glob[1:] if negate else request.glob
            glob_regex = compile_glob(glob)
            on_path = "/" in glob.rstrip("/")

            def glob_check(path: Path) -> bool:
                target = path.relative_to(base).as_posix() if on_path else path.name
                return bool(glob_regex.fullmatch(target)) != negate

            checks.append(glob_check)

        if request.file_type:
            type_globs = FILE_TYPES.get(request.file_type)
            if type_globs is None:
                raise SearchError(f"unrecognized file type: {request.file_type}", exit_code=2)
            type_regexes = [compile_glob(g) for g in type_globs]
            checks.append(lambda path: any(r.fullmatch(path.name) for r in type_regexes))

        def accepts(path: Path) -> bool:
            # Explicitly named files bypass filters, as with ripgrep.
            if path == base:
                return True
            return all(check(path) for check in checks)

        return accepts

    def _read_lines(self, path: Path) -> Optional[list[str]]:
        try:
            raw = path.read_bytes()
        except OSError as e:
            logger.warning(f"Failed to search in {path}: {e}")
            return None
        if b"\0" in raw[:BINARY_SNIFF_BYTES]:
            logger.debug(f"Skipping binary file {path}")
            return None
        # Only "\n" ends a line, as in ripgrep.
        pieces = raw.decode(self.config.encoding, errors="replace").split("\n")
        tail = pieces.pop()
        lines = [piece + "\n" for piece in pieces]
        if tail:
            lines.append(tail)
        return lines

    def _find_matches(
        self, regex: re.Pattern, lines: list[str], request: SearchRequest
    ) -> list[_LineMatch]:
        limit = request.max_count
        if limit == 0 or not lines:
            return []
        matches: list[_LineMatch] = []

        if not request.multiline:
            for index, line in enumerate(lines):
                # The terminator is not part of the line being matched.
                found = regex.search(line[:-1] if line.endswith("\n") else line)
                if found:
                    matches.append(_LineMatch(index, index, found.start(), found.end()))
                    if limit is not None and len(matches) >= limit:
                        break
            return matches

        text = "".join(lines)
        starts = [0]
        for line in lines:
            starts.append(starts[-1] + len(line))

        for found in regex.finditer(text):
            if found.start() >= len(text):
                break
            first = _line_index(starts, found.start())
            last = _line_index(starts, max(found.end() - 1, found.start()))
            if matches and first <= matches[-1].last_line:
                continue
            offset = starts[first]
            matches.append(_LineMatch(first, last, found.start() - offset, found.end() - offset))
            if limit is not None and len(matches) >= limit:
                break
        return matches

    def _content_events(
        self,
        path: str,
        lines: list[str],
        matches: list[_LineMatch],
        request: SearchRequest,
    ) -> list[dict[str, Any]]:
        byte_offsets = [0]
        for line in lines:
            byte_offsets.append(byte_offsets[-1] + len(line.encode("utf-8")))

        def context(index: int) -> dict[str, Any]:
            return _event(
                "context",
                path,
                text=lines[index],
                line_number=index + 1,
                absolute_offset=byte_offsets[index],
                submatches=[],
            )

        events = [{"type": "begin", "data": {"path": {"text": path}}}]
        emitted = -1
        for k, match in enumerate(matches):
            for index in range(max(emitted + 1, match.first_line - request.before_window), match.first_line):
                events.append(context(index))

            text = "".join(lines[match.first_line : match.last_line + 1])
            start = len(text[: match.start].encode("utf-8"))
            end = len(text[: match.end].encode("utf-8"))
            events.append(
                _event(
                    "match",
                    path,
                    text=text,
                    line_number=match.first_line + 1,
                    absolute_offset=byte_offsets[match.first_line],
                    submatches=[{"match": {"text": text[match.start : match.end]}, "start": start, "end": end}],
                )
            )
            emitted = match.last_line

            next_first = matches[k + 1].first_line if k + 1 < len(matches) else len(lines)
            stop = min(match.last_line + request.after_window, next_first - 1, len(lines) - 1)
            for index in range(match.last_line + 1, stop + 1):
                events.append(context(index))
                emitted = index

        events.append({"type": "end", "data": {"path": {"text": path}}})
        return events


def _event(kind: str, path: str, **data: Any) -> dict[str, Any]:
    text = data.pop("text")
    return {
        "type": kind,
        "data": {"path": {"text": path}, "lines": {"text": text}, **data},
    }


def _line_index(starts: list[int], offset: int) -> int:
    """Index of the line containing character ``offset``."""
    return min(bisect.bisect_right(starts, offset), len(starts) - 1) - 1


def create_backend(config: FileSystemConfig) -> SearchBackend:
    """Instantiate the backend selected in the configuration."""
    if config.search_backend == SearchBackendType.PYTHON:
        return PythonSearchBackend(config)
    return RipgrepBackend(config)
