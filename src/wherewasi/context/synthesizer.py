"""Build WorkContext snapshots from a cursor position and its surroundings."""

import re
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TypeVar

from loguru import logger

from wherewasi.config import DEFAULT_TODO_KEYWORDS
from wherewasi.context.git import GitRepoInfoSource, RepoInfoSource
from wherewasi.context.locator import code_preview, locate_comment, locate_symbol
from wherewasi.context.models import CursorPosition, RepoInfo, WorkContext, now_ms
from wherewasi.context.symbols import PythonSymbolSource, SymbolSource

T = TypeVar("T")


def file_basename(file_path: str) -> str:
    """Last path component, for both ``/`` and ``\\`` separators."""
    return re.split(r"[\\/]", file_path)[-1] or "unknown file"


def strip_keyword_prefix(comment: str, keywords: Sequence[str] = DEFAULT_TODO_KEYWORDS) -> str:
    if not keywords:
        return comment
    pattern = r"^(" + "|".join(re.escape(k) for k in keywords) + r"):\s*"
    return re.sub(pattern, "", comment, count=1, flags=re.IGNORECASE)


def generate_note(
    file_path: str,
    function_name: str | None,
    todo_comment: str | None,
    keywords: Sequence[str] = DEFAULT_TODO_KEYWORDS,
) -> str:
    """One-line summary of what was being worked on."""
    if todo_comment:
        text = strip_keyword_prefix(todo_comment, keywords)
        return f"{text} in {function_name}" if function_name else text
    if function_name:
        return f"Working on {function_name} in {file_basename(file_path)}"
    return f"Editing {file_basename(file_path)}"


def synthesize(
    file_path: str,
    symbol: str | None,
    comment: str | None,
    repo_info: RepoInfo | None,
    timestamp: int,
    workspace_folder: str | None = None,
    line: int = 0,
    column: int = 0,
    keywords: Sequence[str] = DEFAULT_TODO_KEYWORDS,
) -> WorkContext:
    """Combine located details into an immutable snapshot. Performs no I/O."""
    repo = repo_info or RepoInfo()
    return WorkContext(
        file_path=file_path,
        line=line,
        column=column,
        function_name=symbol,
        todo_comment=comment,
        note=generate_note(file_path, symbol, comment, keywords),
        git_branch=repo.branch,
        git_last_commit=repo.last_commit,
        git_uncommitted_files=repo.uncommitted_files,
        timestamp=timestamp,
        workspace_folder=workspace_folder,
    )


def _safe_lookup(what: str, file_path: str, lookup: Callable[[], T]) -> T | None:
    # Collaborators are pluggable; any failure only drops the field it feeds.
    try:
        return lookup()
    except Exception as exc:
        logger.warning("{} lookup failed for {}: {}", what, file_path, exc)
        return None


class ContextExtractor:
    """Captures a WorkContext for a cursor position."""

    def __init__(
        self,
        symbol_source: SymbolSource | None = None,
        repo_source: RepoInfoSource | None = None,
        todo_keywords: Sequence[str] | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.symbol_source = symbol_source or PythonSymbolSource()
        self.repo_source = repo_source or GitRepoInfoSource()
        self.todo_keywords = list(todo_keywords or DEFAULT_TODO_KEYWORDS)
        self._clock = clock

    def set_todo_keywords(self, keywords: Sequence[str]) -> None:
        self.todo_keywords = list(keywords)

    def _read_lines(self, file_path: str) -> list[str] | None:
        try:
            return Path(file_path).read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError as exc:
            logger.debug("Cannot read {}: {}", file_path, exc)
            return None

    def capture(self, position: CursorPosition) -> WorkContext:
        """Snapshot the position. Lookup failures leave their fields empty."""
        file_path = position.file_path
        lines = self._read_lines(file_path)

        symbol = None
        comment = None
        if lines is not None:
            text = "\n".join(lines)
            symbols = _safe_lookup("symbol", file_path, lambda: self.symbol_source.symbols_for(file_path, text))
            symbol = locate_symbol(symbols, position.line, position.column)
            comment = locate_comment(lines, position.line, self.todo_keywords)

        repo_info = _safe_lookup("repository", file_path, lambda: self.repo_source.repo_info(file_path))

        return synthesize(
            file_path,
            symbol,
            comment,
            repo_info,
            timestamp=self._clock(),
            workspace_folder=position.workspace_folder,
            line=position.line,
            column=position.column,
            keywords=self.todo_keywords,
        )

    def preview(self, work_context: WorkContext, context_lines: int = 3) -> str | None:
        lines = self._read_lines(work_context.file_path)
        if lines is None:
            return None
        return code_preview(lines, work_context.line, context_lines)
