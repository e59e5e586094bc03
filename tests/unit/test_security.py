# tests/unit/test_security.py
"""Tests for secret validation and password hashing."""
import os

import pytest

from core.security import (
    FORBIDDEN_CREDENTIALS,
    check_secrets_on_startup,
    hash_password,
    validate_credential_strength,
    validate_production_secrets,
    verify_password,
)
from core.settings import Settings

STRONG = "aB3$xK9#mP2@vL7&qR5!wT8^nH4*jF6_"


class TestCredentialStrengthValidation:
    def test_strong_credential_passes(self):
        is_valid, issues = validate_credential_strength(STRONG)
        assert is_valid
        assert issues == []

    def test_empty_credential_fails(self):
        is_valid, issues = validate_credential_strength("")
        assert not is_valid
        assert "empty" in issues[0].lower()

    def test_short_credential_fails(self):
        is_valid, issues = validate_credential_strength("short", min_length=32)
        assert not is_valid
        assert any("too short" in issue.lower() for issue in issues)

    def test_forbidden_credential_fails(self):
        for forbidden in FORBIDDEN_CREDENTIALS:
            is_valid, issues = validate_credential_strength(forbidden)
            assert not is_valid
            assert any("forbidden" in issue.lower() for issue in issues)

    def test_low_entropy_fails(self):
        is_valid, issues = validate_credential_strength("a1" * 20)
        assert not is_valid
        assert any("entropy" in issue.lower() for issue in issues)


@pytest.fixture
def production(monkeypatch):
    monkeypatch.delenv("TESTING", raising=False)


class TestProductionSecretsValidation:
    def test_validation_skipped_in_test_mode(self, monkeypatch):
        monkeypatch.setenv("TESTING", "1")
        assert validate_production_secrets() == (True, [])

    def test_running_under_pytest_does_not_skip_validation(self, production):
        assert os.environ.get("PYTEST_CURRENT_TEST")
        is_valid, issues = validate_production_secrets(jwt_secret="password123")
        assert not is_valid
        assert issues

    def test_missing_secret_and_jwks_fails(self, production):
        is_valid, issues = validate_production_secrets()
        assert not is_valid
        assert any("JWT_SECRET" in issue for issue in issues)

    def test_jwks_url_is_enough(self, production):
        is_valid, _ = validate_production_secrets(jwks_url="https://idp.example.com/jwks")
        assert is_valid

    def test_weak_secret_fails(self, production):
        is_valid, issues = validate_production_secrets(jwt_secret="password123")
        assert not is_valid
        assert all(issue.startswith("JWT_SECRET:") for issue in issues)

    def test_sqlite_rejected_in_production(self, production):
        is_valid, issues = validate_production_secrets(
            jwt_secret=STRONG,
            database_url="sqlite:///./school.db",
            deployment_mode="production",
        )
        assert not is_valid
        assert any("SQLite" in issue for issue in issues)

    def test_strict_startup_raises(self, production):
        with pytest.raises(ValueError):
            check_secrets_on_startup(Settings(jwt_secret="secret"), strict=True)

    def test_lenient_startup_only_logs(self, production):
        check_secrets_on_startup(Settings(jwt_secret="secret"), strict=False)


class TestPasswords:
    def test_hash_and_verify(self):
        encoded = hash_password("s3cret-pass", rounds=4)
        assert encoded.startswith("$2b$04$")
        assert verify_password("s3cret-pass", encoded)
        assert not verify_password("wrong", encoded)

    def test_hashes_are_salted(self):
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_no_development_bypass(self):
        encoded = hash_password("real-password", rounds=4)
        assert not verify_password("password123", encoded)

    @pytest.mark.parametrize(
        "encoded",
        [None, "", "plaintext", "md5$1$abc$def", "pbkdf2_sha256$10$abc$def", "$2b$04$tooshort"],
    )
    def test_malformed_hash_fails(self, encoded):
        assert not verify_password("anything", encoded)

    def test_empty_password_fails(self):
        assert not verify_password("", hash_password("x", rounds=4))
