"""Logging setup for wherewasi."""

import sys
from pathlib import Path

from loguru import logger as _logger

_LOG_INITIALISED = False


def configure(log_path: Path | None = None, verbose: bool = False) -> None:
    """Configure loguru sinks once per process.

    Console output stays quiet unless ``verbose`` is set; the file sink keeps
    debug detail.
    """
    global _LOG_INITIALISED
    if _LOG_INITIALISED:
        return

    from wherewasi.config import LOG_PATH

    target = log_path or LOG_PATH
    _logger.remove()
    if sys.stderr is not None:
        _logger.add(sys.stderr, level="INFO" if verbose else "WARNING")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        _logger.add(
            target,
            level="DEBUG",
            rotation="1 MB",
            retention=3,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
    except OSError as exc:
        _logger.warning("File logging disabled: {}", exc)
    _LOG_INITIALISED = True
