"""FastAPI dependencies exposing the request identity and guards to routes."""
from typing import Iterator, Union

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from core.guards import require_authenticated, require_capability, require_role
from core.models import get_db_manager
from core.rbac import Capability, Role
from core.schemas import Identity, TenantFilter
from core.scope import scope_filter


def get_db_session(request: Request) -> Iterator[Session]:
    manager = get_db_manager(request.app.state.settings.database_url)
    with manager.get_session_context() as session:
        yield session


def get_identity(request: Request) -> Identity:
    return require_authenticated(getattr(request.state, "identity", None))


def get_tenant_filter(
    request: Request, identity: Identity = Depends(get_identity)
) -> TenantFilter:
    tenant_filter = getattr(request.state, "tenant_filter", None)
    if tenant_filter is None:
        # route mounted outside the middleware's protected paths
        tenant_filter = scope_filter(identity)
    return tenant_filter


class RequireRoles:
    """Dependency: ``Depends(RequireRoles(Role.TENANT_ADMIN, Role.STAFF))``."""

    def __init__(self, *roles: Union[Role, str]):
        if not roles:
            raise ValueError("RequireRoles needs at least one role")
        self.roles = frozenset(roles)

    def __call__(self, identity: Identity = Depends(get_identity)) -> Identity:
        return require_role(identity, self.roles)


class RequireCapability:
    def __init__(self, capability: Union[Capability, str]):
        self.capability = capability

    def __call__(self, identity: Identity = Depends(get_identity)) -> Identity:
        return require_capability(identity, self.capability)

