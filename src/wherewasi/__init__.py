"""wherewasi - remember what you were doing in your editor."""

__version__ = "0.1.0"
