"""
Domain errors raised by the authorization core and the membership services.

All of them are terminal for the request: nothing here is retried or recovered
locally. They are translated to HTTP responses in main.create_application().
Database I/O errors are never wrapped in these classes.
"""
from __future__ import annotations

import enum
from typing import Optional


class DenyReason(str, enum.Enum):
    INSUFFICIENT_AUTHORITY = "insufficient-authority"
    CANNOT_ASSIGN_OWNER = "cannot-assign-owner"
    CANNOT_MODIFY_OWNER = "cannot-modify-owner"


class AuthzError(Exception):
    code = "authz_error"
    default_message = "Request could not be authorized."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(AuthzError):
    code = "not_found"
    default_message = "Resource not found."


class Conflict(AuthzError):
    code = "conflict"
    default_message = "A membership already exists for this user."


class PermissionDenied(AuthzError):
    """
    The reason is for internal decisioning, logging and tests. It is not sent
    back to the client.
    """

    code = "rbac_forbidden"
    default_message = "You do not have permission to perform this action."

    def __init__(self, reason: DenyReason, message: Optional[str] = None):
        self.reason = DenyReason(reason)
        super().__init__(message)

    def __repr__(self) -> str:
        return f"PermissionDenied({self.reason.value!r})"


class InvalidRoleChange(AuthzError):
    code = "invalid_role_change"
    default_message = "This role change is not allowed."
