"""Typed exception hierarchy for repository errors.

All exceptions inherit from ``JcrError`` so callers can catch any
application-level repository failure in one place.
"""


class JcrError(Exception):
    """Base exception for all jcr-mcp-server errors."""


class FetchError(JcrError):
    """Raised when the repository answers with a non-2xx HTTP status.

    Attributes:
        url: Requested URL.
        status_code: HTTP status code returned by the server.
        body: Raw response body as text.
    """

    def __init__(
        self,
        url: str,
        status_code: int,
        body: str = "",
        message: str | None = None,
    ):
        super().__init__(message or f"Server returned {status_code}")
        self.url = url
        self.status_code = status_code
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class OperationError(JcrError):
    """Raised when a save, delete, or move operation fails.

    The message is always human-readable and names the affected node.
    """
