"""Login, logout and the sign-in/error pages denials redirect to."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import HTMLResponse
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.orm import Session

from api.auth import issue_token
from api.deps import get_db_session, get_identity
from api.schemas import IdentityOut, LoginRequest, TokenResponse
from api.templating import templates
from core.errors import DenialReason
from core.metrics import LOGIN_COUNTER
from core.models import User
from core.rbac import capabilities_for, parse_role
from core.schemas import Identity
from core.security import verify_password

router = APIRouter()

limiter = Limiter(key_func=get_remote_address)

INVALID_LOGIN = "Invalid email or password"

ERROR_MESSAGES = {
    DenialReason.UNAUTHORIZED.value: "You do not have access to this page.",
    DenialReason.NO_TENANT_ACCESS.value: "You do not have access to this page.",
    DenialReason.INVALID_ROLE.value: "Your account role is not recognised.",
    DenialReason.UNAUTHENTICATED.value: "Please sign in to continue.",
}


@router.post("/api/auth/login", response_model=TokenResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    session: Session = Depends(get_db_session),
):
    """Exchange email and password for a signed session token.

    The token is returned in the body and also set as an HttpOnly cookie for
    page requests. Runs in the threadpool: the lookup and the bcrypt check
    both block. Role and school are copied from the user row now and are
    trusted until the token expires.
    """
    settings = request.app.state.settings
    email = body.email.strip().lower()
    user = session.scalars(select(User).where(User.email == email)).first()

    if user is None or not user.active or not verify_password(body.password, user.password_hash):
        LOGIN_COUNTER.labels(outcome="rejected").inc()
        logger.info(f"Rejected login for {email}")
        raise HTTPException(status_code=401, detail=INVALID_LOGIN)

    role = parse_role(user.role)
    if role is None:
        LOGIN_COUNTER.labels(outcome="invalid_role").inc()
        logger.error(f"User {user.id} has unknown role {user.role!r}")
        raise HTTPException(status_code=401, detail=INVALID_LOGIN)

    token = issue_token(
        user.id,
        role,
        user.tenant_id,
        settings,
        email=user.email,
        name=user.name,
    )
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.token_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    LOGIN_COUNTER.labels(outcome="success").inc()
    logger.info(f"User {user.id} signed in as {role.value}")
    return TokenResponse(
        access_token=token,
        expires_in=settings.token_ttl_seconds,
        role=role.value,
        tenant_id=user.tenant_id,
    )


@router.post("/api/auth/logout", status_code=204)
def logout(request: Request):
    response = Response(status_code=204)
    response.delete_cookie(request.app.state.settings.session_cookie_name)
    return response


@router.get("/api/auth/me", response_model=IdentityOut)
def me(identity: Identity = Depends(get_identity)):
    return IdentityOut(
        user_id=identity.user_id,
        role=identity.role.value,
        tenant_id=identity.tenant_id,
        capabilities=sorted(c.value for c in capabilities_for(identity.role)),
    )


@router.get("/auth/signin", response_class=HTMLResponse)
def signin_page(request: Request):
    return templates.TemplateResponse(request, "signin.html", {"title": "Sign in"})


@router.get("/auth/error", response_class=HTMLResponse)
def error_page(request: Request, error: Optional[str] = None):
    message = ERROR_MESSAGES.get(error or "", "Something went wrong.")
    return templates.TemplateResponse(
        request,
        "error.html",
        {"title": "Access denied", "message": message, "reason": error},
        status_code=403 if error in ERROR_MESSAGES else 400,
    )
