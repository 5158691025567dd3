"""Configuration and directory management for wherewasi."""

import tomllib
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from wherewasi.errors import ConfigError

WHEREWASI_DIR = Path.home() / ".wherewasi"
DB_PATH = WHEREWASI_DIR / "state.db"
CONFIG_PATH = WHEREWASI_DIR / "config.toml"
LOG_PATH = WHEREWASI_DIR / "wherewasi.log"

# Tables that may hold the settings; the first is the editor extension namespace
CONFIG_SECTIONS = ("whatWasIDoing", "wherewasi")

DEFAULT_TODO_KEYWORDS = ["TODO", "FIXME", "HACK", "NOTE", "BUG", "XXX"]


class ExtensionConfig(BaseModel):
    """Recognized settings, with their defaults."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    idle_timeout_minutes: float = Field(default=10, gt=0)
    max_history_size: int = Field(default=10, ge=1)
    exclude_patterns: list[str] = Field(default_factory=list)
    auto_show_resume_popup: bool = True
    todo_keywords: list[str] = Field(default_factory=lambda: list(DEFAULT_TODO_KEYWORDS))


def ensure_dirs() -> None:
    """Ensure the wherewasi directory exists."""
    WHEREWASI_DIR.mkdir(parents=True, exist_ok=True)


def parse_config(raw: dict) -> ExtensionConfig:
    """Build an ExtensionConfig from a parsed TOML document."""
    section = raw
    for name in CONFIG_SECTIONS:
        if isinstance(raw.get(name), dict):
            section = raw[name]
            break
    try:
        return ExtensionConfig.model_validate(section)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(path: Path | None = None) -> ExtensionConfig:
    """Load settings from disk, falling back to defaults when missing or malformed."""
    config_path = path or CONFIG_PATH
    if not config_path.exists():
        return ExtensionConfig()

    try:
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))
        return parse_config(raw)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Could not read {}: {}; using defaults", config_path, exc)
    except ConfigError as exc:
        logger.warning("{}; using defaults", exc)
    return ExtensionConfig()
