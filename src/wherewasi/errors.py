"""Exceptions raised by the wherewasi core."""


class WhereWasIError(Exception):
    """Base class for all wherewasi errors."""


class ConfigError(WhereWasIError):
    """The configuration file could not be understood."""


class PersistenceError(WhereWasIError):
    """The key/value store rejected a read or write."""


class InvalidImportError(WhereWasIError):
    """Imported history data failed to parse or validate."""


class NavigationTargetMissing(WhereWasIError):
    """The file referenced by a snapshot no longer exists."""

    def __init__(self, file_path: str):
        super().__init__(f"File not found: {file_path}")
        self.file_path = file_path
