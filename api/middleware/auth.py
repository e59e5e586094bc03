"""Authentication middleware and denial responses.

``TenantContextMiddleware`` resolves the caller on every protected request,
rejects requests without a valid credential or resolvable school, and
attaches the identity and tenant filter to ``request.state`` (and to the
``core.context`` variables). Routes still apply their own role/capability
checks through ``api.deps``.

Identity is only ever taken from the verified credential. Client-sent
headers such as ``x-user-id`` or ``x-school-id`` are never read.
"""
from __future__ import annotations

from urllib.parse import urlencode

from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from api.auth import extract_credential
from core.context import request_scope
from core.errors import AuthorizationError, NotAuthenticated
from core.metrics import AUTH_DENIAL_COUNTER, AUTH_SUCCESS_COUNTER
from core.scope import scope_filter

SIGNIN_PATH = "/auth/signin"
ERROR_PATH = "/auth/error"

PUBLIC_EXACT = frozenset({"/", "/health"})
PUBLIC_PREFIXES = ("/auth", "/api/auth", "/static", "/metrics", "/docs", "/openapi.json")
# Under a public prefix but still needs a caller.
PROTECTED_EXACT = frozenset({"/api/auth/me"})


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def is_public_path(path: str) -> bool:
    if path in PROTECTED_EXACT:
        return False
    if path in PUBLIC_EXACT:
        return True
    return any(_under(path, prefix) for prefix in PUBLIC_PREFIXES)


def is_api_path(path: str) -> bool:
    return _under(path, "/api")


def denial_response(request: Request, error: AuthorizationError) -> Response:
    """Terminate the request: JSON status for API paths, redirect for pages."""
    reason = error.reason.value
    AUTH_DENIAL_COUNTER.labels(reason=reason).inc()
    logger.warning(
        f"Denied {request.method} {request.url.path}: reason={reason} ({error.message})"
    )

    if is_api_path(request.url.path):
        headers = {"WWW-Authenticate": "Bearer"} if error.status_code == 401 else None
        return JSONResponse(
            status_code=error.status_code,
            content={"detail": error.detail, "reason": reason},
            headers=headers,
        )

    if isinstance(error, NotAuthenticated):
        return RedirectResponse(SIGNIN_PATH, status_code=303)
    return RedirectResponse(f"{ERROR_PATH}?{urlencode({'error': reason})}", status_code=303)


class TenantContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if is_public_path(request.url.path):
            return await call_next(request)

        settings = request.app.state.settings
        resolver = request.app.state.session_resolver
        credential = extract_credential(request, settings.session_cookie_name)

        try:
            identity = await resolver.resolve_async(credential)
            tenant_filter = scope_filter(identity)
        except AuthorizationError as e:
            return denial_response(request, e)

        request.state.identity = identity
        request.state.tenant_filter = tenant_filter
        AUTH_SUCCESS_COUNTER.labels(role=identity.role.value).inc()

        with request_scope(identity, tenant_filter):
            return await call_next(request)
