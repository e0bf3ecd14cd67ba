"""
Error taxonomy surfaced at the request boundary.

Each error carries the HTTP status it maps to and a stable machine-readable
code. None of them is fatal to the process; the exception handler in
citytrees.main turns them into JSON responses.
"""

from typing import Any, Dict, Optional


class CityTreesError(Exception):
    """Base class for errors that end a single request with a typed response."""

    status_code: int = 500
    code: str = "internal_error"
    default_detail: str = "Internal error"

    def __init__(self, detail: Optional[str] = None, **context: Any):
        self.detail = detail or self.default_detail
        self.context: Dict[str, Any] = context
        super().__init__(self.detail)


class UserInputError(CityTreesError):
    status_code = 400
    code = "invalid_input"
    default_detail = "Invalid input"


class UnauthenticatedError(CityTreesError):
    status_code = 401
    code = "unauthenticated"
    default_detail = "Not authenticated"


class ForbiddenError(CityTreesError):
    status_code = 403
    code = "forbidden"
    default_detail = "Insufficient permissions"


class InvalidTransitionError(CityTreesError):
    status_code = 403
    code = "invalid_transition"
    default_detail = "Status transition is not allowed"


class NotFoundError(CityTreesError):
    status_code = 404
    code = "not_found"
    default_detail = "Resource not found"


class ConflictError(CityTreesError):
    status_code = 409
    code = "conflict"
    default_detail = "Resource was modified concurrently"


class LookupFailedError(CityTreesError):
    """Ownership could not be determined; never treated as an allow."""

    status_code = 503
    code = "lookup_failed"
    default_detail = "Could not verify resource ownership"
