"""Custom exception classes for the admin console.

Every error carries a stable machine-readable ``code`` and the HTTP status it
maps to, so the single exception handler in ``main`` can render it.
"""

from typing import Any, Optional


class EstateAdminError(Exception):
    """Base exception for the admin console."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "An error occurred", details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error


class UnauthenticatedError(EstateAdminError):
    """Raised when no valid principal is attached to the request."""
    code = "UNAUTHENTICATED"
    status_code = 401


class AccountDisabledError(EstateAdminError):
    """Raised when the principal's account has been deactivated."""
    code = "ACCOUNT_DISABLED"
    status_code = 401


class InsufficientRoleError(EstateAdminError):
    """Raised when the principal's role is not allowed on a resource."""
    code = "INSUFFICIENT_ROLE"
    status_code = 403


class InsufficientPermissionError(EstateAdminError):
    """Raised when the principal's role lacks a button permission."""
    code = "INSUFFICIENT_PERMISSION"
    status_code = 403


class ResourceNotFoundError(EstateAdminError):
    """Raised when a requested resource is not found."""
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(EstateAdminError):
    """Raised when input validation fails."""
    code = "VALIDATION_ERROR"
    status_code = 400


class ResourceConflictError(EstateAdminError):
    """Raised when a delete is blocked by an in-use reference."""
    code = "CONFLICT"
    status_code = 409


class InternalError(EstateAdminError):
    """Raised when a store or transaction failure aborts an operation."""
    code = "INTERNAL_ERROR"
    status_code = 500
