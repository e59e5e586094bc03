import time

import pytest

from core.errors import CredentialInvalid, InvalidRole
from core.rbac import Role
from core.schemas import Claims, Identity
from core.session import SessionResolver, identity_from_claims


class StaticVerifier:
    """Accepts exactly one token."""

    def __init__(self, claims: Claims, token: str = "good-token"):
        self.claims = claims
        self.token = token
        self.calls = 0

    def verify(self, raw_token: str) -> Claims:
        self.calls += 1
        if raw_token != self.token:
            raise CredentialInvalid("bad signature")
        return self.claims


class ExplodingVerifier:
    def verify(self, raw_token: str) -> Claims:
        raise RuntimeError("key server unreachable")


class SlowVerifier:
    def verify(self, raw_token: str) -> Claims:
        time.sleep(1.0)
        return Claims(subject="u", role="STAFF", tenant_id="school-1")


def test_resolve_returns_identity_from_claims():
    resolver = SessionResolver(
        StaticVerifier(Claims(subject="u1", role="STAFF", tenant_id="school-1"))
    )
    assert resolver.resolve("good-token") == Identity(
        user_id="u1", role=Role.STAFF, tenant_id="school-1"
    )


@pytest.mark.parametrize("credential", [None, "", "forged"])
def test_missing_or_bad_credential_is_invalid(credential):
    resolver = SessionResolver(StaticVerifier(Claims(subject="u1", role="STAFF")))
    with pytest.raises(CredentialInvalid) as exc:
        resolver.resolve(credential)
    assert exc.value.status_code == 401


def test_verifier_crash_is_treated_as_invalid():
    resolver = SessionResolver(ExplodingVerifier())
    with pytest.raises(CredentialInvalid):
        resolver.resolve("anything")


def test_unknown_role_claim():
    resolver = SessionResolver(StaticVerifier(Claims(subject="u1", role="SUPER_ADMIN")))
    with pytest.raises(InvalidRole) as exc:
        resolver.resolve("good-token")
    assert exc.value.reason.value == "InvalidRole"


def test_resolution_is_repeatable_and_uncached():
    verifier = StaticVerifier(Claims(subject="u1", role="MEMBER", tenant_id="school-1"))
    resolver = SessionResolver(verifier)
    assert resolver.resolve("good-token") == resolver.resolve("good-token")
    assert verifier.calls == 2


def test_role_comes_from_claims_only():
    verifier = StaticVerifier(Claims(subject="u1", role="TENANT_ADMIN", tenant_id="school-1"))
    resolver = SessionResolver(verifier)
    first = resolver.resolve("good-token")

    verifier.claims = Claims(subject="u1", role="STAFF", tenant_id="school-1")
    second = resolver.resolve("good-token")

    assert first.role is Role.TENANT_ADMIN
    assert second.role is Role.STAFF


def test_empty_tenant_claim_becomes_none():
    identity = identity_from_claims(Claims(subject="u1", role="GUARDIAN", tenant_id=""))
    assert identity.tenant_id is None


def test_identity_is_immutable():
    identity = Identity(user_id="u1", role=Role.STAFF, tenant_id="school-1")
    with pytest.raises(Exception):
        identity.role = Role.GLOBAL_ADMIN


@pytest.mark.asyncio
async def test_resolve_async():
    resolver = SessionResolver(
        StaticVerifier(Claims(subject="u1", role="GLOBAL_ADMIN")), verify_timeout=2
    )
    identity = await resolver.resolve_async("good-token")
    assert identity.role is Role.GLOBAL_ADMIN
    assert identity.tenant_id is None


@pytest.mark.asyncio
async def test_verification_timeout_fails_closed():
    resolver = SessionResolver(SlowVerifier(), verify_timeout=0.05)
    with pytest.raises(CredentialInvalid):
        await resolver.resolve_async("token")

