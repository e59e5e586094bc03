"""Session resolution: turn a bearer credential into an Identity.

The role and tenant come from the verified credential claims established at
login. The database is not consulted again, so a role change takes effect on
the user's next login. Nothing is cached between calls.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from loguru import logger

from core.errors import CredentialInvalid, InvalidRole
from core.rbac import parse_role
from core.schemas import Claims, Identity

DEFAULT_VERIFY_TIMEOUT = 5.0


class CredentialVerifier(Protocol):
    def verify(self, raw_token: str) -> Claims:
        """Return verified claims or raise CredentialInvalid."""
        ...


def identity_from_claims(claims: Claims) -> Identity:
    role = parse_role(claims.role)
    if role is None:
        raise InvalidRole(f"Unknown role {claims.role!r} for user {claims.subject}")
    return Identity(user_id=claims.subject, role=role, tenant_id=claims.tenant_id or None)


class SessionResolver:
    def __init__(
        self,
        verifier: CredentialVerifier,
        verify_timeout: float = DEFAULT_VERIFY_TIMEOUT,
    ):
        self.verifier = verifier
        self.verify_timeout = verify_timeout

    def resolve(self, credential: Optional[str]) -> Identity:
        """Verify ``credential`` and build the Identity it describes.

        Raises:
            CredentialInvalid: missing, malformed, expired or forged credential
            InvalidRole: the credential is genuine but names an unknown role
        """
        if not credential:
            raise CredentialInvalid("No credential presented")
        try:
            claims = self.verifier.verify(credential)
        except CredentialInvalid:
            raise
        except Exception as e:
            raise CredentialInvalid(f"Credential verification failed: {e}") from e
        return identity_from_claims(claims)

    async def resolve_async(self, credential: Optional[str]) -> Identity:
        """Like ``resolve`` but bounded by ``verify_timeout``.

        A verifier that does not answer in time counts as an invalid
        credential.
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.resolve, credential),
                timeout=self.verify_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Credential verification timed out after {self.verify_timeout}s"
            )
            raise CredentialInvalid("Credential verification timed out") from e
