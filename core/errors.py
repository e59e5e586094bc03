"""Authorization errors and the machine-readable denial reasons they carry.

Every error here is terminal for the request that raised it. They subclass
PermissionError so plain callers that only know about the builtin still
catch them.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class DenialReason(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    UNAUTHORIZED = "Unauthorized"
    NO_TENANT_ACCESS = "NoTenantAccess"
    INVALID_ROLE = "InvalidRole"


# Client-facing text. Forbidden outcomes share one message so a response does
# not tell the caller which check failed or whether a tenant exists.
FORBIDDEN_DETAIL = "Forbidden"
UNAUTHENTICATED_DETAIL = "Authentication required"


class AuthorizationError(PermissionError):
    reason: DenialReason = DenialReason.UNAUTHORIZED
    status_code: int = 403
    detail: str = FORBIDDEN_DETAIL

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.reason.value)
        self.message = message or self.reason.value


class NotAuthenticated(AuthorizationError):
    """No identity could be established for the request."""

    reason = DenialReason.UNAUTHENTICATED
    status_code = 401
    detail = UNAUTHENTICATED_DETAIL


class CredentialInvalid(NotAuthenticated):
    """Malformed, expired, forged or unverifiable credential."""


class RoleNotAllowed(AuthorizationError):
    reason = DenialReason.UNAUTHORIZED


class CrossTenantAccess(RoleNotAllowed):
    """A non-global identity tried to act on another tenant's entity."""


class NoTenantAccess(AuthorizationError):
    """A non-global identity carries no tenant."""

    reason = DenialReason.NO_TENANT_ACCESS


class InvalidRole(AuthorizationError):
    """The credential names a role outside the known set."""

    reason = DenialReason.INVALID_ROLE
