"""Unit tests for bearer token issuance and verification."""

import pytest
from jose import jwt

from identity_core.config import DEVELOPMENT_SECRET_KEY, Settings, get_settings
from identity_core.kernel.errors import (
    BadSignatureError,
    ConfigurationError,
    MalformedTokenError,
    TokenError,
    TokenExpiredError,
    UnauthorizedError,
)
from identity_core.kernel.identity.jwt import TokenService
from identity_core.kernel.identity.types import Role

TEST_SECRET_KEY = get_settings().secret_key


@pytest.fixture
def tokens(clock) -> TokenService:
    return TokenService(
        secret_key=TEST_SECRET_KEY,
        admin_ttl_seconds=24 * 3600,
        customer_ttl_seconds=7 * 24 * 3600,
        clock=clock,
    )


class TestIssue:

    def test_round_trip(self, tokens: TokenService):
        issued = tokens.issue("cust-1", Role.CUSTOMER)
        claims = tokens.verify(issued.token)

        assert claims.subject_id == "cust-1"
        assert claims.role is Role.CUSTOMER
        assert claims.expires_at == issued.expires_at

    def test_ttl_follows_role(self, tokens: TokenService):
        customer = tokens.issue("cust-1", Role.CUSTOMER)
        admin = tokens.issue("admin", Role.ADMIN)

        assert customer.expires_in == 7 * 24 * 3600
        assert admin.expires_in == 24 * 3600

    def test_explicit_ttl(self, tokens: TokenService):
        issued = tokens.issue("cust-1", Role.CUSTOMER, ttl_seconds=60)
        assert issued.expires_in == 60

    def test_tokens_are_unique(self, tokens: TokenService):
        first = tokens.issue("cust-1", Role.CUSTOMER)
        second = tokens.issue("cust-1", Role.CUSTOMER)
        assert first.token != second.token


class TestVerify:

    def test_expired_token(self, tokens: TokenService, clock):
        issued = tokens.issue("cust-1", Role.CUSTOMER, ttl_seconds=60)
        clock.advance(seconds=60)

        with pytest.raises(TokenExpiredError):
            tokens.verify(issued.token)

    def test_valid_just_before_expiry(self, tokens: TokenService, clock):
        issued = tokens.issue("cust-1", Role.CUSTOMER, ttl_seconds=60)
        clock.advance(seconds=59)

        assert tokens.verify(issued.token).subject_id == "cust-1"

    def test_wrong_secret(self, tokens: TokenService, clock):
        other = TokenService(secret_key="another-secret-key-that-is-long-enough", clock=clock)
        issued = other.issue("cust-1", Role.CUSTOMER)

        with pytest.raises(BadSignatureError):
            tokens.verify(issued.token)

    def test_bad_signature_checked_before_expiry(self, tokens: TokenService, clock):
        other = TokenService(secret_key="another-secret-key-that-is-long-enough", clock=clock)
        issued = other.issue("cust-1", Role.CUSTOMER, ttl_seconds=1)
        clock.advance(hours=1)

        with pytest.raises(BadSignatureError):
            tokens.verify(issued.token)

    def test_tampered_role(self, tokens: TokenService):
        issued = tokens.issue("cust-1", Role.CUSTOMER)
        header, payload, signature = issued.token.split(".")
        forged = tokens.issue("cust-1", Role.ADMIN).token.split(".")[1]

        with pytest.raises(BadSignatureError):
            tokens.verify(f"{header}.{forged}.{signature}")

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "not a token at all"])
    def test_malformed(self, tokens: TokenService, garbage):
        with pytest.raises(MalformedTokenError):
            tokens.verify(garbage)

    def test_unexpected_algorithm(self, tokens: TokenService):
        token = jwt.encode({"sub": "x", "role": "admin"}, TEST_SECRET_KEY, algorithm="HS512")
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_missing_claims(self, tokens: TokenService):
        token = jwt.encode({"sub": "x", "type": "access"}, TEST_SECRET_KEY, algorithm="HS256")
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_unknown_role(self, tokens: TokenService, clock):
        now = int(clock().timestamp())
        token = jwt.encode(
            {"sub": "x", "role": "superuser", "iat": now, "exp": now + 60, "jti": "j", "type": "access"},
            TEST_SECRET_KEY,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_all_failures_are_unauthorized(self):
        for error in (TokenExpiredError, MalformedTokenError, BadSignatureError):
            assert issubclass(error, TokenError)
            assert issubclass(error, UnauthorizedError)
            assert error.status_code == 401


class TestConfiguration:

    def test_short_secret_rejected(self):
        with pytest.raises(ConfigurationError):
            TokenService(secret_key="too-short")

    def test_asymmetric_algorithm_rejected(self):
        with pytest.raises(ConfigurationError):
            TokenService(secret_key=TEST_SECRET_KEY, algorithm="RS256")

    def test_placeholder_secret_rejected_in_production(self):
        settings = Settings(secret_key=DEVELOPMENT_SECRET_KEY, environment="production")
        with pytest.raises(ConfigurationError):
            TokenService.from_settings(settings)

    def test_from_settings_uses_configured_ttls(self):
        settings = Settings(
            secret_key=TEST_SECRET_KEY,
            admin_token_expire_minutes=30,
            customer_token_expire_minutes=120,
        )
        tokens = TokenService.from_settings(settings)

        assert tokens.issue("admin", Role.ADMIN).expires_in == 30 * 60
        assert tokens.issue("c", Role.CUSTOMER).expires_in == 120 * 60


def test_hash_token_is_stable_hex():
    digest = TokenService.hash_token("some-reset-token")
    assert digest == TokenService.hash_token("some-reset-token")
    assert len(digest) == 64
    assert digest != TokenService.hash_token("other-token")
