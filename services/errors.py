"""
Domain errors raised by the service layer.

Routers never build HTTP responses for these themselves: ``main.py``
registers one exception handler per class and maps it to a status code.
"""

from typing import Any, Dict, List, Optional


class AuthServiceError(Exception):
    """Base class for every error the auth service raises on purpose."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AuthServiceError):
    """Malformed input. ``errors`` holds one entry per offending field."""

    status_code = 422
    default_detail = "Invalid input"

    def __init__(self, errors: List[Dict[str, Any]], detail: Optional[str] = None):
        super().__init__(detail)
        self.errors = errors

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        errors = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
            }
            for err in exc.errors()
        ]
        return cls(errors)


class Conflict(AuthServiceError):
    status_code = 409
    default_detail = "User already exists"


class Unauthorized(AuthServiceError):
    status_code = 401
    default_detail = "Could not validate credentials"


class NotFound(AuthServiceError):
    status_code = 404
    default_detail = "Not found"


class StoreUnavailable(AuthServiceError):
    """Persistence fault. Retryable, never to be reported as Unauthorized."""

    status_code = 503
    default_detail = "Storage temporarily unavailable"
