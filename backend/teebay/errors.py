# Overview: Error taxonomy shared by services and routes.

"""
Every failure a command can report carries a kind and an HTTP status.

Routes surface `str(error)` verbatim, so Validation and Conflict messages
must be specific and human-readable. Authentication and Authorization use a
uniform "Unauthorized" so responses never reveal whether another user's
resource exists.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    """Base class for failures surfaced to API clients."""

    kind = "INTERNAL"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    def to_dict(self) -> dict:
        return {"error": str(self), "kind": self.kind}


class AuthenticationError(MarketplaceError):
    """401: no identity where one is required."""

    kind = "AUTHENTICATION"
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(MarketplaceError):
    """403: identity present but not the resource owner."""

    kind = "AUTHORIZATION"
    status_code = 403
    default_message = "Unauthorized"


class ValidationError(MarketplaceError):
    """400-level input problem."""

    kind = "VALIDATION"
    status_code = 400
    default_message = "Validation failed"


class NotFoundError(MarketplaceError):
    """404: referenced product or user is absent."""

    kind = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class ConflictError(MarketplaceError):
    """409-level business rule conflict (already sold, overlapping rental, self-dealing)."""

    kind = "CONFLICT"
    status_code = 409
    default_message = "Resource conflict"
