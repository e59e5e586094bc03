"""Request-scoped identity and tenant filter.

Set by the request middleware after verification, read by code that has no
access to the request object. Uses contextvars so concurrent requests never
see each other's values.
"""
from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import Iterator, Optional

from core.schemas import Identity, TenantFilter

_current_identity: contextvars.ContextVar[Optional[Identity]] = contextvars.ContextVar(
    "current_identity", default=None
)
_current_tenant_filter: contextvars.ContextVar[Optional[TenantFilter]] = (
    contextvars.ContextVar("current_tenant_filter", default=None)
)


def get_current_identity() -> Optional[Identity]:
    return _current_identity.get()


def get_current_tenant_filter() -> Optional[TenantFilter]:
    return _current_tenant_filter.get()


@contextmanager
def request_scope(identity: Identity, tenant_filter: TenantFilter) -> Iterator[None]:
    """Bind identity and filter for the duration of one request."""
    identity_token = _current_identity.set(identity)
    filter_token = _current_tenant_filter.set(tenant_filter)
    try:
        yield
    finally:
        _current_tenant_filter.reset(filter_token)
        _current_identity.reset(identity_token)
