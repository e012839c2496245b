"""
JWT bearer token issuance and verification.
"""

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from identity_core.config import DEVELOPMENT_SECRET_KEY, Settings, get_settings
from identity_core.kernel.errors import (
    BadSignatureError,
    ConfigurationError,
    MalformedTokenError,
    TokenExpiredError,
)
from identity_core.kernel.identity.types import Role

MIN_SECRET_LENGTH = 32
TOKEN_TYPE = "access"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BearerToken(BaseModel):
    """An issued token. ``token`` is the opaque string handed to clients."""

    token: str
    subject_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    token_type: str = "bearer"

    @property
    def expires_in(self) -> int:
        return int((self.expires_at - self.issued_at).total_seconds())


class TokenClaims(BaseModel):
    """Verified token payload."""

    subject_id: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    jti: str


class TokenService:
    """
    Issues and verifies signed, time-limited bearer tokens.

    Stateless: validity depends only on the signature and ``exp``. The role is
    inside the signed payload, so admin and customer tokens are told apart
    without a lookup.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        admin_ttl_seconds: int = 24 * 3600,
        customer_ttl_seconds: int = 7 * 24 * 3600,
        clock: Optional[Clock] = None,
    ):
        if not secret_key or len(secret_key) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"Token signing secret must be at least {MIN_SECRET_LENGTH} characters"
            )
        if not algorithm.startswith("HS"):
            raise ConfigurationError(f"Unsupported signing algorithm: {algorithm}")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl_seconds = {
            Role.ADMIN: admin_ttl_seconds,
            Role.CUSTOMER: customer_ttl_seconds,
        }
        self._clock = clock or utc_now

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> "TokenService":
        settings = settings or get_settings()
        if settings.environment == "production" and settings.secret_key == DEVELOPMENT_SECRET_KEY:
            raise ConfigurationError("SECRET_KEY still set to the development placeholder")
        return cls(
            secret_key=settings.secret_key,
            algorithm=settings.algorithm,
            admin_ttl_seconds=settings.admin_token_expire_minutes * 60,
            customer_ttl_seconds=settings.customer_token_expire_minutes * 60,
            clock=clock,
        )

    def issue(
        self,
        subject_id: str,
        role: Role,
        ttl_seconds: Optional[int] = None,
    ) -> BearerToken:
        """
        Create a signed token for a subject.

        Args:
            subject_id: Identity id (customer UUID or the admin subject id)
            role: Role claim embedded in the payload
            ttl_seconds: Lifetime; defaults to the role's configured TTL

        Returns:
            BearerToken with the encoded string and its timestamps
        """
        role = Role(role)
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds[role]
        now = self._clock().replace(microsecond=0)
        expire = now + timedelta(seconds=ttl)

        payload = {
            "sub": str(subject_id),
            "role": role.value,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "jti": str(uuid.uuid4()),
            "type": TOKEN_TYPE,
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return BearerToken(
            token=token,
            subject_id=str(subject_id),
            role=role,
            issued_at=now,
            expires_at=expire,
        )

    def verify(self, token: str) -> TokenClaims:
        """
        Verify and decode a token.

        Raises:
            MalformedTokenError: not a structurally valid token of ours
            BadSignatureError: signature does not match the signing secret
            TokenExpiredError: signature valid, but ``exp`` has passed
        """
        if not token or not isinstance(token, str):
            raise MalformedTokenError(reason="empty token")

        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError(reason=str(e)) from e

        if header.get("alg") != self.algorithm:
            raise MalformedTokenError(reason=f"unexpected alg {header.get('alg')!r}")

        # Expiry is checked below against our own clock.
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_aud": False},
            )
        except JWTError as e:
            raise BadSignatureError(reason=str(e)) from e

        claims = self._parse_claims(payload)
        if claims.expires_at <= self._clock():
            raise TokenExpiredError(reason=f"expired at {claims.expires_at.isoformat()}")
        return claims

    @staticmethod
    def _parse_claims(payload: dict) -> TokenClaims:
        if payload.get("type") != TOKEN_TYPE:
            raise MalformedTokenError(reason="wrong token type")
        try:
            return TokenClaims(
                subject_id=str(payload["sub"]),
                role=Role(payload["role"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
                jti=str(payload["jti"]),
            )
        except (KeyError, ValueError, TypeError) as e:
            raise MalformedTokenError(reason=f"bad claims: {e}") from e

    @staticmethod
    def hash_token(token: str) -> str:
        """
        SHA-256 hex digest of a token, used where a token must be looked up
        without storing it (password reset tokens).
        """
        return hashlib.sha256(token.encode()).hexdigest()
