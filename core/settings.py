"""Runtime configuration read from the environment (and a local .env file)."""
from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel

try:
    load_dotenv()
except Exception as e:  # pragma: no cover
    logger.warning(f"Failed to load .env file: {e}")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


class Settings(BaseModel):
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    jwt_jwks_url: Optional[str] = None
    jwt_issuer: Optional[str] = None
    jwt_audience: Optional[str] = None
    token_ttl_seconds: int = 8 * 3600
    verify_timeout_seconds: float = 5.0
    session_cookie_name: str = "session_token"
    cookie_secure: bool = True
    database_url: str = "sqlite:///./school.db"
    deployment_mode: str = "local"
    strict_secrets: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            jwt_secret=os.getenv("JWT_SECRET") or None,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            jwt_jwks_url=os.getenv("JWT_JWKS_URL") or None,
            jwt_issuer=os.getenv("JWT_ISSUER") or None,
            jwt_audience=os.getenv("JWT_AUDIENCE") or None,
            token_ttl_seconds=int(_env_float("TOKEN_TTL_SECONDS", 8 * 3600)),
            verify_timeout_seconds=_env_float("VERIFY_TIMEOUT_SECONDS", 5.0),
            session_cookie_name=os.getenv("SESSION_COOKIE_NAME", "session_token"),
            cookie_secure=os.getenv("COOKIE_SECURE", "true").lower() == "true",
            database_url=os.getenv("DATABASE_URL", "sqlite:///./school.db"),
            deployment_mode=os.getenv("DEPLOYMENT_MODE", "local").lower(),
            strict_secrets=os.getenv("STRICT_SECRETS", "0") == "1",
        )
