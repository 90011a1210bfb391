"""
Error taxonomy for the blog.

Every error carries the HTTP status code it is surfaced as, so route
handlers can translate it into a response without inspecting its type.
"""
from typing import Optional


class BlogError(Exception):
    """Base class for all blog errors."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        """
        Initialize the error.

        Args:
            message: Human readable description, safe to return to callers
            status_code: Optional override of the class status code
        """
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(BlogError):
    """A missing article, admin or key."""

    status_code = 404


class ValidationError(BlogError):
    """A payload is missing required fields or is malformed."""

    status_code = 400


class AuthorizationError(BlogError):
    """Missing or invalid credentials (401) or insufficient role (403)."""

    status_code = 401


class UpstreamFetchError(BlogError):
    """The theme template source could not be reached."""

    status_code = 500


class StoreError(BlogError):
    """The key-value store rejected a write or delete."""

    status_code = 500
