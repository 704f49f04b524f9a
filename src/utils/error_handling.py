"""Error taxonomy and helpers for consistent error responses."""

import json
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for application errors."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "status": "error"}


class NotFoundError(AppError):
    """Raised when a requested resource is missing."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class ValidationError(AppError):
    """Raised when input validation fails."""

    def __init__(self, message: str = "Invalid input", errors: Optional[list] = None):
        super().__init__(message, status_code=422)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body


class AuthenticationError(AppError):
    """Raised when no (active) user is attached to the request."""

    def __init__(self, message: str = "Authentication required for this operation"):
        super().__init__(message, status_code=401)


class PermissionDeniedError(AppError):
    """Raised when the acting user lacks the role or area for an operation."""

    def __init__(self, message: str, code: str, operation: Optional[str] = None):
        super().__init__(message, status_code=403)
        self.code = code
        self.operation = operation

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["code"] = self.code
        return body


class InvalidStateError(AppError):
    """Raised when a document is not in a state that allows the operation."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class ConflictError(AppError):
    """Raised when a conditional write loses against a concurrent writer."""

    def __init__(self, message: str = "Document was modified concurrently; reload and retry"):
        super().__init__(message, status_code=409)

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["retry"] = True
        return body


def to_response(error: AppError, correlation_id: Optional[str] = None) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    body = error.to_dict()
    if correlation_id:
        body["correlation_id"] = correlation_id
    return {
        "statusCode": error.status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
