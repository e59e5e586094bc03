"""Authorization guards.

Each guard returns the identity unchanged when the check passes and raises
an ``AuthorizationError`` otherwise. None of them keep state, so calling one
twice with the same arguments gives the same outcome.
"""
from __future__ import annotations

from typing import Iterable, Optional, Union

from core.errors import NotAuthenticated, RoleNotAllowed
from core.rbac import Capability, Role, has_capability, parse_role
from core.schemas import Identity


def require_authenticated(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise NotAuthenticated("No authenticated identity")
    return identity


def require_role(identity: Identity, allowed_roles: Iterable[Union[Role, str]]) -> Identity:
    """Deny unless the identity's role is listed.

    GLOBAL_ADMIN gets no implicit pass: list it when it is meant to be allowed.
    """
    allowed = {parse_role(r) for r in allowed_roles} - {None}
    if identity.role not in allowed:
        raise RoleNotAllowed(f"Role {identity.role.value} not allowed")
    return identity


def require_capability(identity: Identity, capability: Union[Capability, str]) -> Identity:
    if not has_capability(identity.role, capability):
        name = getattr(capability, "value", capability)
        raise RoleNotAllowed(f"Role {identity.role.value} lacks {name}")
    return identity


def require_owner_or_capability(
    identity: Identity,
    owner_id: Optional[str],
    capability: Union[Capability, str],
    own_capability: Union[Capability, str],
) -> Identity:
    """Pass on ``capability``, or on ``own_capability`` when the caller owns the record."""
    if has_capability(identity.role, capability):
        return identity
    if owner_id and owner_id == identity.user_id and has_capability(identity.role, own_capability):
        return identity
    raise RoleNotAllowed(f"User {identity.user_id} may not modify a record owned by {owner_id}")
