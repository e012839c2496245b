"""Unit tests for password hashing."""

import pytest

from identity_core.kernel.identity.password import (
    PasswordHasher,
    hash_password,
    is_bcrypt_hash,
    verify_password,
)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    def test_hash_creates_different_hashes(self, hasher: PasswordHasher):
        """Same password should create different hashes (due to salt)."""
        password = "TestPassword123"
        hash1 = hasher.hash(password)
        hash2 = hasher.hash(password)

        assert hash1 != hash2
        assert hash1.startswith("$2b$10$")

    def test_verify_correct_password(self, hasher: PasswordHasher):
        password = "TestPassword123"
        hashed = hasher.hash(password)

        assert PasswordHasher.verify(password, hashed) is True

    def test_verify_wrong_password(self, hasher: PasswordHasher):
        hashed = hasher.hash("TestPassword123")

        assert PasswordHasher.verify("WrongPassword", hashed) is False

    def test_verify_garbage_hash_is_false(self):
        assert PasswordHasher.verify("anything", "not-a-hash") is False

    def test_rejects_low_cost_factor(self):
        with pytest.raises(ValueError):
            PasswordHasher(rounds=4)

    def test_dummy_verification_never_matches(self, hasher: PasswordHasher):
        assert hasher.verify_dummy("TestPassword123") is False
        # Dummy hash is created once and reused
        assert hasher.dummy_hash == hasher.dummy_hash

    def test_needs_rehash(self, hasher: PasswordHasher):
        assert hasher.needs_rehash(hasher.hash("pw-12345678")) is False
        assert PasswordHasher(rounds=11).needs_rehash(hasher.hash("pw-12345678")) is True
        assert hasher.needs_rehash("garbage") is True

    @pytest.mark.asyncio
    async def test_async_wrappers(self, hasher: PasswordHasher):
        hashed = await hasher.hash_async("TestPassword123")
        assert await hasher.verify_async("TestPassword123", hashed) is True
        assert await hasher.verify_async("nope", hashed) is False
        assert await hasher.verify_dummy_async("TestPassword123") is False

    def test_convenience_functions(self):
        """Test hash_password and verify_password functions."""
        password = "TestPassword123"
        hashed = hash_password(password)

        assert verify_password(password, hashed) is True
        assert verify_password("wrong", hashed) is False


def test_is_bcrypt_hash(hasher: PasswordHasher):
    assert is_bcrypt_hash(hasher.hash("TestPassword123")) is True
    assert is_bcrypt_hash("plaintext-password") is False
    assert is_bcrypt_hash("$2b$10$short") is False
