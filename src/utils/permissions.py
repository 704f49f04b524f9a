"""
Role checks applied by every service operation.

The actor is always passed in explicitly; nothing here reads a global
"current user".
"""

from typing import Optional

from models.actor import Actor
from utils.error_handling import AuthenticationError, PermissionDeniedError


def require_authenticated(actor: Optional[Actor], operation: str) -> Actor:
    """Return the actor if present and active."""
    if actor is None:
        raise AuthenticationError()
    if not actor.is_active:
        raise PermissionDeniedError(
            "Account is deactivated. Contact administrator.",
            code="ACCOUNT_INACTIVE",
            operation=operation,
        )
    return actor


def require_admin(actor: Optional[Actor], operation: str) -> Actor:
    actor = require_authenticated(actor, operation)
    if not actor.is_admin:
        raise PermissionDeniedError(
            "Administrator privileges required for this operation",
            code="ADMIN_REQUIRED",
            operation=operation,
        )
    return actor


def require_area_access(actor: Optional[Actor], area: Optional[str], operation: str) -> Actor:
    """Employees may only touch customers collected in one of their areas."""
    actor = require_authenticated(actor, operation)
    if not actor.can_access_area(area):
        raise PermissionDeniedError(
            "Access denied: Customer not assigned to current employee",
            code="CUSTOMER_ACCESS_DENIED",
            operation=operation,
        )
    return actor


def require_request_access(
    actor: Optional[Actor], requester_id: str, operation: str
) -> Actor:
    """Admins see every request, employees only their own."""
    actor = require_authenticated(actor, operation)
    if not actor.is_admin and actor.user_id != requester_id:
        raise PermissionDeniedError(
            "Access denied: Request not created by current employee",
            code="REQUEST_ACCESS_DENIED",
            operation=operation,
        )
    return actor
