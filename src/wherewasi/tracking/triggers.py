"""Decide when a snapshot is worth taking."""

import re
import time
from collections.abc import Callable, Sequence
from enum import Enum

# Dwell time on an edited file before switching away counts as meaningful work
MIN_FILE_TIME_SECONDS = 2 * 60

_WINDOWS_ABSOLUTE = re.compile(r"^[a-zA-Z]:\\")


class TriggerReason(Enum):
    IDLE = "idle"
    WINDOW_BLUR = "window-blur"
    FILE_SWITCH = "file-switch"
    MANUAL = "manual"
    SHUTDOWN = "shutdown"


def _pattern_to_regex(pattern: str) -> re.Pattern:
    return re.compile(".*".join(re.escape(part) for part in pattern.split("*")))


def should_track_file(file_path: str, exclude_patterns: Sequence[str]) -> bool:
    """Whether ``file_path`` is a local file not matched by any exclude pattern.

    Patterns match anywhere in the path; ``*`` matches any run of characters.
    """
    if not file_path.startswith("/") and not _WINDOWS_ABSOLUTE.match(file_path):
        return False
    for pattern in exclude_patterns:
        if _pattern_to_regex(pattern).search(file_path):
            return False
    return True


class TriggerPolicy:
    """Tracks the focused file to decide whether switching away should save.

    A switch saves only when the previous file was edited and stayed focused
    for at least ``min_file_time`` seconds.
    """

    def __init__(self, min_file_time: float = MIN_FILE_TIME_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.min_file_time = min_file_time
        self._clock = clock
        self.current_file: str | None = None
        self.opened_at: float = 0.0
        self.edited = False

    def on_focus_changed(self, file_path: str) -> bool:
        """Record a focus change. Returns True if the previous file should be saved."""
        if file_path == self.current_file:
            return False

        now = self._clock()
        should_save = (
            self.current_file is not None
            and self.edited
            and now - self.opened_at >= self.min_file_time
        )

        self.current_file = file_path
        self.opened_at = now
        self.edited = False
        return should_save

    def on_document_edited(self, file_path: str) -> None:
        if file_path == self.current_file:
            self.edited = True
