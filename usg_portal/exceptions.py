"""
Domain exceptions.

Services raise these instead of building HTTP responses. Each
carries the status code the API layer should answer with; the
handlers registered in main.py turn them into the standard
JSON error envelope.
"""

from typing import Any


class PortalError(Exception):
    """Base class for every error the service layer raises on purpose."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(PortalError):
    """An entity id does not resolve."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: Any = None):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details=(
                {"resource_type": resource_type, "resource_id": resource_id}
                if resource_id is not None else None
            ),
        )


class InvalidTransitionError(PortalError):
    """A status change that is not in the transition table."""

    status_code = 400
    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Invalid status transition from {from_status} to {to_status}",
            details={"from_status": from_status, "to_status": to_status},
        )


class ValidationError(PortalError):
    """Input that is well-formed but fails a business rule."""

    status_code = 400
    code = "VALIDATION_ERROR"


class AuthenticationError(PortalError):
    status_code = 401
    code = "AUTH_FAILED"


class ForbiddenError(PortalError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(PortalError):
    """Duplicate unique value or a lost optimistic-concurrency race."""

    status_code = 409
    code = "CONFLICT"
