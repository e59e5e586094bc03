"""Credential helpers: JWT issuing/verification and credential extraction.

Tokens carry the claims the session resolver trusts: ``sub``, ``role`` and
``tenant_id``, plus ``exp``/``iat``. HS256 tokens are checked against
``JWT_SECRET``; when ``JWT_JWKS_URL`` is configured, RS256 keys are fetched
from it with a bounded timeout.
"""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt
from loguru import logger
from pydantic import ValidationError
from starlette.requests import HTTPConnection

from core.errors import CredentialInvalid
from core.rbac import Role
from core.schemas import Claims
from core.settings import Settings

REQUIRED_CLAIMS = ["exp", "sub"]


def encode_jwt(payload: dict, secret: str, algorithm: str = "HS256") -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


def issue_token(
    user_id: str,
    role: Role,
    tenant_id: Optional[str],
    settings: Settings,
    email: Optional[str] = None,
    name: Optional[str] = None,
    now: Optional[int] = None,
) -> str:
    if not settings.jwt_secret:
        raise RuntimeError("JWT_SECRET is required to issue tokens")
    issued_at = int(now if now is not None else time.time())
    payload: Dict[str, Any] = {
        "sub": user_id,
        "role": role.value,
        "tenant_id": tenant_id,
        "iat": issued_at,
        "exp": issued_at + settings.token_ttl_seconds,
    }
    if email:
        payload["email"] = email
    if name:
        payload["name"] = name
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return encode_jwt(payload, settings.jwt_secret, settings.jwt_algorithm)


def claims_from_payload(payload: Dict[str, Any]) -> Claims:
    try:
        return Claims(
            subject=payload.get("sub"),
            role=payload.get("role"),
            tenant_id=payload.get("tenant_id"),
            email=payload.get("email"),
            name=payload.get("name"),
            issued_at=payload.get("iat"),
            expires_at=payload.get("exp"),
        )
    except ValidationError as e:
        raise CredentialInvalid("Token claims are malformed") from e


class JWTVerifier:
    """``CredentialVerifier`` backed by PyJWT."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._jwks_client = None
        if settings.jwt_jwks_url:
            self._jwks_client = jwt.PyJWKClient(
                settings.jwt_jwks_url,
                timeout=max(1, int(settings.verify_timeout_seconds)),
            )
        elif not settings.jwt_secret:
            logger.warning("No JWT_SECRET configured: every credential will be rejected")

    def _key_for(self, token: str):
        if self._jwks_client is not None:
            return self._jwks_client.get_signing_key_from_jwt(token).key, ["RS256"]
        return self.settings.jwt_secret, [self.settings.jwt_algorithm]

    def verify(self, raw_token: str) -> Claims:
        if self._jwks_client is None and not self.settings.jwt_secret:
            raise CredentialInvalid("Token verification is not configured")
        try:
            key, algorithms = self._key_for(raw_token)
            payload = jwt.decode(
                raw_token,
                key,
                algorithms=algorithms,
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise CredentialInvalid("Token has expired") from e
        except jwt.PyJWTError as e:
            raise CredentialInvalid(f"Token rejected: {type(e).__name__}") from e
        return claims_from_payload(payload)


def extract_credential(conn: HTTPConnection, cookie_name: str) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    header = conn.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
        return token or None
    return conn.cookies.get(cookie_name) or None
