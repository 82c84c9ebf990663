"""
Service Error Taxonomy

Every business-rule failure raised by the service layer derives from
ServiceError. Routers convert these into HTTPException responses with a
structured `{"error": ..., "message": ...}` detail, plus any extra payload
the error carries (field errors, missing documents).
"""

from typing import Any
from uuid import UUID

from fastapi import HTTPException


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)

    def extra(self) -> dict[str, Any]:
        """Additional fields merged into the error response body."""
        return {}


class RegistrationValidationError(ServiceError):
    """Raised when submitted data fails field-level validation."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
        )

    def extra(self) -> dict[str, Any]:
        return {"errors": self.errors}


class RegistrationNotFoundError(ServiceError):
    """Raised when a registration cannot be found."""

    def __init__(self, identifier: str | UUID | None = None):
        message = (
            f"Registration {identifier} not found" if identifier else "Registration not found"
        )
        super().__init__(
            message=message,
            error_code="REGISTRATION_NOT_FOUND",
            status_code=404,
        )


class UnauthorizedError(ServiceError):
    """Raised when credentials are missing or invalid."""

    def __init__(self, message: str = "Invalid username or password."):
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=401,
        )


class ForbiddenError(ServiceError):
    """Raised when an authenticated admin lacks the required role or capability."""

    def __init__(self, message: str = "You do not have permission to perform this action."):
        super().__init__(
            message=message,
            error_code="FORBIDDEN",
            status_code=403,
        )


class InvalidStateError(ServiceError):
    """Raised when an operation is not allowed for the registration's current status."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_STATE",
            status_code=400,
        )


class InvalidTransitionError(ServiceError):
    """Raised when a status change is not an edge of the workflow graph."""

    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(
            message=f"Cannot change status from '{current_status}' to '{target_status}'.",
            error_code="INVALID_TRANSITION",
            status_code=400,
        )

    def extra(self) -> dict[str, Any]:
        return {"current_status": self.current_status, "target_status": self.target_status}


class InvalidStatusArgumentError(ServiceError):
    """Raised when a requested decision status is not one of the decision targets."""

    def __init__(self, value: str, allowed: list[str]):
        self.value = value
        self.allowed = allowed
        super().__init__(
            message=f"Invalid status '{value}'. Allowed values: {', '.join(allowed)}.",
            error_code="INVALID_STATUS",
            status_code=400,
        )

    def extra(self) -> dict[str, Any]:
        return {"allowed_statuses": self.allowed}


class IncompleteDocumentsError(ServiceError):
    """Raised when submission is attempted with required documents missing."""

    def __init__(self, missing_documents: list[str]):
        self.missing_documents = missing_documents
        super().__init__(
            message="Required documents are missing.",
            error_code="INCOMPLETE_DOCUMENTS",
            status_code=400,
        )

    def extra(self) -> dict[str, Any]:
        return {"missing_documents": self.missing_documents}


class DuplicateEmailError(ServiceError):
    """Raised when an applicant email is already used by another registration."""

    def __init__(self, email: str):
        super().__init__(
            message=f"Email {email} is already registered.",
            error_code="DUPLICATE_EMAIL",
            status_code=400,
        )


class DuplicateAdminError(ServiceError):
    """Raised when an admin username or email is already taken."""

    def __init__(self):
        super().__init__(
            message="Username or email is already in use.",
            error_code="DUPLICATE_ADMIN",
            status_code=400,
        )


class ConcurrentUpdateError(ServiceError):
    """Raised when a record was modified by another request since it was loaded."""

    def __init__(self, identifier: str | UUID):
        super().__init__(
            message=(
                f"Registration {identifier} was modified by another request. "
                "Reload and try again."
            ),
            error_code="CONCURRENT_UPDATE",
            status_code=409,
        )


def to_http_exception(e: ServiceError) -> HTTPException:
    """Convert a service error into an HTTPException with a structured detail."""
    detail: dict[str, Any] = {
        "error": e.error_code,
        "message": e.message,
    }
    detail.update(e.extra())
    return HTTPException(status_code=e.status_code, detail=detail)


def internal_error() -> HTTPException:
    """Generic 500 response; the cause is only logged."""
    return HTTPException(
        status_code=500,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
