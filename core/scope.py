"""Tenant scoping: derive the query filter for an identity."""
from __future__ import annotations

from typing import Optional

from core.errors import CrossTenantAccess, NoTenantAccess
from core.schemas import Identity, TenantFilter

UNRESTRICTED = TenantFilter()


def scope_filter(identity: Identity) -> TenantFilter:
    """Return the filter downstream queries must apply.

    Raises NoTenantAccess for a non-global identity without a tenant; that
    case must never degrade to an unrestricted filter.
    """
    if identity.is_global:
        return UNRESTRICTED
    if not identity.tenant_id:
        raise NoTenantAccess(f"User {identity.user_id} does not belong to any school")
    return TenantFilter(tenant_id=identity.tenant_id)


def require_tenant(identity: Identity) -> Identity:
    scope_filter(identity)
    return identity


def can_access_tenant(identity: Identity, target_tenant_id: Optional[str]) -> bool:
    if identity.is_global:
        return True
    if not identity.tenant_id or not target_tenant_id:
        return False
    return identity.tenant_id == target_tenant_id


def ensure_tenant_access(identity: Identity, target_tenant_id: Optional[str]) -> Identity:
    """Raise CrossTenantAccess unless ``identity`` may act on the tenant."""
    if not can_access_tenant(identity, target_tenant_id):
        raise CrossTenantAccess(
            f"User {identity.user_id} may not act on school {target_tenant_id}"
        )
    return identity
