"""SQLite key/value storage and the per-workspace snapshot history."""

import json
import sqlite3
import threading
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import TypeAdapter, ValidationError

from wherewasi.config import DB_PATH
from wherewasi.context.models import WorkContext, now_ms
from wherewasi.errors import InvalidImportError, PersistenceError

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    scope TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    updated_at INTEGER NOT NULL,
    PRIMARY KEY (scope, key)
);
"""

GLOBAL_SCOPE = "global"
HISTORY_KEY = "workContextHistory"
LAST_SHOWN_KEY = "lastShownTimestamp"

DEFAULT_MAX_HISTORY_SIZE = 10
RESUME_POPUP_INTERVAL_MS = 30 * 60 * 1000
DAY_MS = 24 * 60 * 60 * 1000

# Line drift tolerated between consecutive snapshots before they count as new
SAME_FUNCTION_LINE_TOLERANCE = 10
SAME_FILE_LINE_TOLERANCE = 5

_history_adapter = TypeAdapter(list[WorkContext])


def workspace_scope(workspace_folder: str | None) -> str:
    return f"workspace:{workspace_folder or ''}"


class KeyValueStore:
    """SQLite-backed JSON key/value regions (one global, one per workspace)."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or DB_PATH
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.executescript(SCHEMA)
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def get(self, scope: str, key: str, default: Any = None) -> Any:
        with self._lock:
            try:
                row = self._get_conn().execute(
                    "SELECT value FROM kv WHERE scope = ? AND key = ?", (scope, key)
                ).fetchone()
            except (sqlite3.Error, OSError) as exc:
                raise PersistenceError(f"Failed to read {key}: {exc}") from exc
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Stored value for {key} is corrupt: {exc}") from exc

    def set(self, scope: str, key: str, value: Any) -> None:
        with self._lock:
            try:
                conn = self._get_conn()
                with conn:
                    conn.execute(
                        """INSERT OR REPLACE INTO kv (scope, key, value, updated_at)
                        VALUES (?, ?, ?, ?)""",
                        (scope, key, json.dumps(value), now_ms()),
                    )
            except (sqlite3.Error, OSError) as exc:
                raise PersistenceError(f"Failed to write {key}: {exc}") from exc


def are_contexts_same(a: WorkContext, b: WorkContext) -> bool:
    """Whether two snapshots are close enough that the newer one adds nothing."""
    if a.file_path != b.file_path:
        return False

    # A changed, added or removed note is always a new context
    if a.todo_comment != b.todo_comment:
        return False

    line_diff = abs(a.line - b.line)
    if a.function_name and b.function_name and a.function_name == b.function_name:
        if line_diff <= SAME_FUNCTION_LINE_TOLERANCE:
            return True

    return line_diff <= SAME_FILE_LINE_TOLERANCE


class HistoryStore:
    """Newest-first, size-bounded, duplicate-suppressing snapshot history.

    Every read-modify-write runs under one re-entrant lock so that triggers
    firing from the idle timer thread cannot interleave with each other.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        workspace_folder: str | None = None,
        max_history_size: int = DEFAULT_MAX_HISTORY_SIZE,
    ):
        self.kv = kv
        self.scope = workspace_scope(workspace_folder)
        self.max_history_size = max_history_size
        self._lock = threading.RLock()

    def _load(self) -> list[WorkContext]:
        raw = self.kv.get(self.scope, HISTORY_KEY, [])
        try:
            return _history_adapter.validate_python(raw)
        except ValidationError as exc:
            raise PersistenceError(f"Stored history is corrupt: {exc}") from exc

    def _store(self, history: list[WorkContext]) -> None:
        self.kv.set(self.scope, HISTORY_KEY, [ctx.to_json_dict() for ctx in history])

    def save_context(self, work_context: WorkContext) -> bool:
        """Prepend a snapshot unless it duplicates the newest one.

        Returns True if the history changed.
        """
        with self._lock:
            history = self._load()
            if history and are_contexts_same(work_context, history[0]):
                logger.debug("Context unchanged, skipping duplicate save")
                return False

            history.insert(0, work_context)
            self._store(history[: self.max_history_size])
            logger.info("Saved context {}:{}", work_context.file_path, work_context.line + 1)
            return True

    def get_last_context(self) -> WorkContext | None:
        history = self.get_history()
        return history[0] if history else None

    def get_history(self) -> list[WorkContext]:
        with self._lock:
            return self._load()

    def get_contexts_for_workspace(self, workspace_path: str) -> list[WorkContext]:
        return [ctx for ctx in self.get_history() if ctx.workspace_folder == workspace_path]

    def clear_history(self) -> None:
        with self._lock:
            self._store([])
            logger.info("Cleared history for {}", self.scope)

    def prune_old_contexts(self, max_age_days: float = 30) -> int:
        """Drop snapshots older than ``max_age_days``. Returns how many were removed."""
        with self._lock:
            history = self._load()
            max_age_ms = max_age_days * DAY_MS
            now = now_ms()
            recent = [ctx for ctx in history if now - ctx.timestamp < max_age_ms]
            removed = len(history) - len(recent)
            if removed:
                self._store(recent)
                logger.info("Pruned {} old contexts", removed)
            return removed

    def set_max_history_size(self, size: int) -> None:
        self.max_history_size = size

    def export_history(self) -> str:
        history = self.get_history()
        return json.dumps([ctx.to_json_dict() for ctx in history], indent=2)

    def import_history(self, data: str | bytes) -> int:
        """Replace the stored history with an exported one.

        The whole payload is validated before anything is written. Entries
        beyond ``max_history_size`` are dropped from the end. Returns how many
        were stored.
        """
        try:
            history = _history_adapter.validate_json(data)
        except ValidationError as exc:
            raise InvalidImportError(f"Invalid history data: {exc.error_count()} error(s)") from exc

        with self._lock:
            kept = history[: self.max_history_size]
            self._store(kept)
        if len(kept) < len(history):
            logger.warning("Import truncated to {} of {} contexts", len(kept), len(history))
        logger.info("Imported {} contexts", len(kept))
        return len(kept)

    def should_show_resume_popup(self) -> bool:
        """True if the resume prompt has not been shown in the last 30 minutes."""
        last_shown = self.kv.get(GLOBAL_SCOPE, LAST_SHOWN_KEY, 0)
        return now_ms() - last_shown > RESUME_POPUP_INTERVAL_MS

    def mark_resume_popup_shown(self) -> None:
        self.kv.set(GLOBAL_SCOPE, LAST_SHOWN_KEY, now_ms())
