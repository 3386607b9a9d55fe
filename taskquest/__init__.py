"""TaskQuest analytics engine and API."""

__version__ = "0.1.0"
