"""
Domain error taxonomy.

Workflows raise these; the HTTP layer maps them onto status codes:

- ValidationError   -> 400
- InvalidIdentifier -> 400
- NotFoundError     -> 404
- PersistenceError  -> 500 (cause logged, never returned)
- PublicationError  -> never surfaced, logged only
"""


class MessagingError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MessagingError):
    """Malformed or out-of-bound input. Raised before any side effect."""


class InvalidIdentifier(MessagingError):
    """Path identifier is not a positive integer."""

    def __init__(self, message: str = "Invalid ID format"):
        super().__init__(message)


class NotFoundError(MessagingError):
    """The repository has no record for the requested identifier."""


class PersistenceError(MessagingError):
    """Any repository failure other than not-found."""


class PublicationError(MessagingError):
    """Publishing an event to the queue failed."""
