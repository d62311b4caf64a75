"""Turn conversational messages into a tracked, self-calibrating task list."""

__version__ = "0.1.0"
