# core/security.py
"""Secret validation and password hashing."""
import os
import re
from typing import List, Optional, Tuple

import bcrypt
from loguru import logger

# Development and placeholder values that must never sign production tokens.
FORBIDDEN_CREDENTIALS = {
    "secret",
    "changeme",
    "change-me",
    "password",
    "password123",
    "admin",
    "123456",
    "dev-secret",
    "test-secret",
    "your-jwt-secret-here",
    "nextauth-secret",
}

PASSWORD_ROUNDS = 12


def validate_credential_strength(
    credential: str, min_length: int = 32
) -> Tuple[bool, List[str]]:
    """
    Validate a signing secret meets minimum requirements.

    Returns:
        Tuple of (is_valid, list_of_issues)
    """
    issues = []

    if not credential:
        issues.append("Credential is empty")
        return False, issues

    if len(credential) < min_length:
        issues.append(f"Credential too short (minimum {min_length} characters)")

    if credential.lower() in FORBIDDEN_CREDENTIALS:
        issues.append("Using forbidden test/weak credential")

    if re.match(r'^[a-z]+$', credential.lower()):
        issues.append(
            "Credential contains only letters (should include numbers/symbols)"
        )

    if len(set(credential)) < 10:
        issues.append("Credential has low entropy (too few unique characters)")

    return len(issues) == 0, issues


def validate_production_secrets(
    jwt_secret: Optional[str] = None,
    jwks_url: Optional[str] = None,
    database_url: Optional[str] = None,
    deployment_mode: str = "local",
) -> Tuple[bool, List[str]]:
    """
    Validate token-signing and database configuration.

    Returns:
        Tuple of (all_valid, list_of_all_issues)
    """
    if os.getenv("TESTING") == "1":
        return True, []

    all_issues = []

    if jwt_secret:
        is_valid, issues = validate_credential_strength(jwt_secret, min_length=32)
        if not is_valid:
            all_issues.extend([f"JWT_SECRET: {issue}" for issue in issues])
    elif not jwks_url:
        all_issues.append("Neither JWT_SECRET nor JWT_JWKS_URL is set")

    if deployment_mode == "production":
        if not database_url:
            all_issues.append("DATABASE_URL is not set for production")
        elif "sqlite" in database_url.lower():
            all_issues.append(
                "DATABASE_URL: SQLite not recommended for production (use PostgreSQL)"
            )

    return len(all_issues) == 0, all_issues


def check_secrets_on_startup(settings, strict: bool = False) -> None:
    """
    Log configuration problems; raise ValueError instead when ``strict``.
    """
    is_valid, issues = validate_production_secrets(
        jwt_secret=settings.jwt_secret,
        jwks_url=settings.jwt_jwks_url,
        database_url=settings.database_url,
        deployment_mode=settings.deployment_mode,
    )
    if is_valid:
        return

    logger.error("SECURITY VALIDATION FAILED - WEAK OR MISSING TOKEN SECRETS")
    for issue in issues:
        logger.error(f"  - {issue}")
    logger.error(
        "Generate a secret with: "
        "python -c \"import secrets; print(secrets.token_urlsafe(48))\""
    )

    if strict:
        raise ValueError(
            f"Security validation failed: {len(issues)} issue(s) found. "
            "Fix secrets before serving requests."
        )


def hash_password(password: str, rounds: int = PASSWORD_ROUNDS) -> str:
    """Return the bcrypt hash of ``password`` as text.

    Raises ValueError for passwords longer than bcrypt's 72-byte limit.
    """
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def verify_password(password: Optional[str], encoded: Optional[str]) -> bool:
    """Check ``password`` against a stored bcrypt hash.

    A missing or malformed stored value fails the check.
    """
    if not password or not encoded:
        return False
    try:
        return bcrypt.checkpw(password.encode(), encoded.encode())
    except ValueError:
        return False
