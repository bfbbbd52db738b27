"""Contact form intake and notification recipient management service."""

__version__ = "1.0.0"
