"""
Error taxonomy for the task board.

Remote failures carry the upstream HTTP status so callers can report it
verbatim. Auth failures are a distinct subclass so the caller can drop the
credential and prompt again instead of showing a generic error.
"""


class TaskboardError(Exception):
    """Base class for all task board errors."""
    pass


class ConfigError(TaskboardError):
    """Raised when configuration is invalid or incomplete."""
    pass


class Unauthenticated(TaskboardError):
    """Raised when no credential is available for the issue tracker."""

    def __init__(self, message: str = "No access token configured"):
        super().__init__(message)


class RemoteRejected(TaskboardError):
    """The issue tracker answered with a non-success status."""

    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"Remote rejected request ({status}): {message}" if message
                         else f"Remote rejected request ({status})")


class AuthExpired(RemoteRejected):
    """A 401/403 from the issue tracker. The credential must be re-entered."""
    pass


class NotFound(TaskboardError):
    """A mutation referenced an id that is not in the in-memory collection."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"No item with id {item_id!r}")


class MutationInFlight(TaskboardError):
    """A second mutation was issued for an id whose first mutation is still pending."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Another change to {item_id!r} is still in progress")
