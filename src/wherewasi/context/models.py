"""Snapshot and symbol data models."""

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class WorkContext(BaseModel):
    """A point-in-time editing location plus derived metadata.

    Serialized with camelCase keys (``filePath``, ``gitBranch`` ...) so that
    exported histories keep the same shape as the editor extension's storage.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    file_path: str = Field(description="Absolute path of the tracked file")
    line: int = Field(ge=0, description="Zero-based cursor line")
    column: int = Field(ge=0, description="Zero-based cursor column")
    function_name: str | None = Field(default=None, description='e.g. "Method: save()"')
    todo_comment: str | None = Field(default=None, description='e.g. "TODO: fix bug"')
    note: str | None = None
    git_branch: str | None = None
    git_last_commit: str | None = None
    git_uncommitted_files: int | None = Field(default=None, ge=0)
    timestamp: int = Field(default_factory=now_ms, description="Capture instant in epoch ms")
    workspace_folder: str | None = None

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class RepoInfo(BaseModel):
    """Repository state for a file; every field may be absent."""

    model_config = ConfigDict(frozen=True)

    branch: str | None = None
    last_commit: str | None = None
    uncommitted_files: int | None = None


class SymbolKind(Enum):
    FUNCTION = "Function"
    METHOD = "Method"
    CLASS = "Class"
    INTERFACE = "Interface"
    CONSTRUCTOR = "Constructor"
    PROPERTY = "Property"
    VARIABLE = "Variable"
    CONSTANT = "Constant"
    OTHER = "Code"


class SymbolRange(BaseModel):
    """Inclusive zero-based range of a symbol declaration."""

    model_config = ConfigDict(frozen=True)

    start_line: int
    start_column: int = 0
    end_line: int
    end_column: int = 0

    def contains(self, line: int, column: int) -> bool:
        if line < self.start_line or line > self.end_line:
            return False
        if line == self.start_line and column < self.start_column:
            return False
        if line == self.end_line and column > self.end_column:
            return False
        return True


class Symbol(BaseModel):
    """A named construct in a document symbol tree."""

    name: str
    kind: SymbolKind = SymbolKind.OTHER
    range: SymbolRange
    children: list["Symbol"] = Field(default_factory=list)


class CursorPosition(BaseModel):
    """The most recently observed editing location."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    line: int = Field(default=0, ge=0)
    column: int = Field(default=0, ge=0)
    workspace_folder: str | None = None
