"""
Password hashing utilities using bcrypt.
"""

import asyncio
from typing import Optional

import bcrypt

from identity_core.config import get_settings

# Lowest cost factor accepted for stored hashes
MIN_BCRYPT_ROUNDS = 10


class PasswordHasher:
    """
    Password hashing service.

    The cost factor is fixed when the hasher is created; existing hashes keep
    whatever cost they were created with and still verify.
    """

    def __init__(self, rounds: Optional[int] = None):
        rounds = rounds or get_settings().bcrypt_rounds
        if rounds < MIN_BCRYPT_ROUNDS:
            raise ValueError(f"bcrypt rounds must be at least {MIN_BCRYPT_ROUNDS}")
        self.rounds = rounds
        self._dummy_hash: Optional[str] = None

    @staticmethod
    def _truncate_password(password: str) -> bytes:
        """
        Truncate password to 72 bytes (bcrypt limit) and encode.

        bcrypt only uses the first 72 bytes of a password.
        """
        return password.encode('utf-8')[:72]

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            Hashed password string
        """
        pwd_bytes = self._truncate_password(password)
        salt = bcrypt.gensalt(rounds=self.rounds)
        hashed = bcrypt.hashpw(pwd_bytes, salt)
        return hashed.decode('utf-8')

    @staticmethod
    def verify(plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Args:
            plain_password: Plain text password to verify
            hashed_password: Stored hashed password

        Returns:
            True if password matches, False otherwise (including unparseable hashes)
        """
        try:
            pwd_bytes = PasswordHasher._truncate_password(plain_password)
            hash_bytes = hashed_password.encode('utf-8')
            return bcrypt.checkpw(pwd_bytes, hash_bytes)
        except ValueError:
            return False

    @property
    def dummy_hash(self) -> str:
        """A hash of a random secret, compared against when an account is unknown."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(bcrypt.gensalt().decode('ascii'))
        return self._dummy_hash

    def verify_dummy(self, plain_password: str) -> bool:
        """Burn one comparison's worth of CPU. Always False."""
        self.verify(plain_password, self.dummy_hash)
        return False

    def needs_rehash(self, hashed_password: str) -> bool:
        """
        Check if a password hash was created with a different cost factor.

        Format: $2b$XX$... where XX is the rounds
        """
        parts = hashed_password.split('$')
        if len(parts) < 3 or not parts[2].isdigit():
            return True
        return int(parts[2]) != self.rounds

    # Async wrappers: bcrypt is CPU-bound, so run it off the event loop.
    # No lock is held, so verifications for different accounts run in parallel.

    async def hash_async(self, password: str) -> str:
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, plain_password: str, hashed_password: str) -> bool:
        return await asyncio.to_thread(self.verify, plain_password, hashed_password)

    async def verify_dummy_async(self, plain_password: str) -> bool:
        return await asyncio.to_thread(self.verify_dummy, plain_password)


def is_bcrypt_hash(value: str) -> bool:
    """Cheap structural check used to validate the configured admin hash."""
    parts = value.split('$')
    return (
        len(parts) == 4
        and parts[1] in ("2a", "2b", "2y")
        and parts[2].isdigit()
        and len(parts[3]) == 53
    )


_default_hasher: Optional[PasswordHasher] = None


def get_password_hasher() -> PasswordHasher:
    """Get or create the default hasher."""
    global _default_hasher
    if _default_hasher is None:
        _default_hasher = PasswordHasher()
    return _default_hasher


# Convenience functions
def hash_password(password: str) -> str:
    """Hash a password."""
    return get_password_hasher().hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password."""
    return PasswordHasher.verify(plain_password, hashed_password)
