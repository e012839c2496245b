"""
Two-phase password reset: request a single-use token, then consume it.
"""

import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_core.kernel.errors import InvalidResetTokenError
from identity_core.kernel.identity.credential_store import CredentialStore
from identity_core.kernel.identity.jwt import TokenService
from identity_core.kernel.identity.types import normalize_email
from identity_core.kernel.models.password_reset import PasswordResetToken
from identity_core.logging_config import get_logger, mask_email

logger = get_logger(__name__)

# 32 random bytes -> 256 bits of entropy
RESET_TOKEN_BYTES = 32
DEFAULT_RESET_TTL = timedelta(hours=1)


class ResetMailer(Protocol):
    async def send_password_reset(
        self,
        to_email: str,
        reset_token: str,
        first_name: Optional[str] = None,
    ) -> bool: ...


@dataclass(frozen=True)
class PasswordResetDelivery:
    """A reset e-mail waiting to be sent."""

    to_email: str
    token: str = field(repr=False)
    customer_id: Optional[uuid.UUID] = None
    first_name: Optional[str] = None
    expires_at: Optional[datetime] = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PasswordResetFlow:
    """
    Password reset lifecycle.

    ``request`` never reveals whether an address is registered: it does the
    same work either way (one lookup, no writes) and callers get the same
    response. The token row is written by ``deliver`` in the background. ``complete``
    consumes a token exactly once, in the same transaction as the password
    change.
    """

    def __init__(
        self,
        session: AsyncSession,
        credentials: CredentialStore,
        mailer: Optional[ResetMailer] = None,
        token_ttl: timedelta = DEFAULT_RESET_TTL,
        clock: Optional[Callable[[], datetime]] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        self.session = session
        # Background delivery outlives the request session
        self.session_factory = session_factory
        self.credentials = credentials
        self.mailer = mailer
        self.token_ttl = token_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def request(self, email: str) -> Optional[PasswordResetDelivery]:
        """
        Start a reset for an e-mail address.

        Both branches do one lookup and mint a token, and nothing is written
        before the caller responds. The token row is stored by ``deliver``.

        Returns:
            The delivery to hand to ``deliver`` for an active account,
            otherwise None. Callers must respond identically in both cases.
        """
        email = normalize_email(email)
        token = secrets.token_urlsafe(RESET_TOKEN_BYTES)
        expires_at = self._clock() + self.token_ttl

        try:
            customer = await self.credentials.get_customer_by_email(email)
        except SQLAlchemyError:
            # Same outward result as the unknown-account path
            await self.session.rollback()
            logger.exception(
                "Password reset lookup failed",
                extra={"email": mask_email(email)},
            )
            return None

        if customer is None or not customer.is_active:
            logger.info(
                "Password reset requested for unknown or inactive account",
                extra={"email": mask_email(email)},
            )
            return None

        return PasswordResetDelivery(
            to_email=customer.email,
            token=token,
            customer_id=customer.id,
            first_name=customer.first_name,
            expires_at=expires_at,
        )

    async def store(self, delivery: PasswordResetDelivery) -> bool:
        """Persist the digest of a delivery's token. Returns False on failure."""
        record = PasswordResetToken(
            token_hash=TokenService.hash_token(delivery.token),
            customer_id=delivery.customer_id,
            expires_at=delivery.expires_at,
            consumed=False,
        )
        try:
            if self.session_factory is not None:
                async with self.session_factory() as session:
                    session.add(record)
                    await session.commit()
            else:
                self.session.add(record)
                await self.session.commit()
        except SQLAlchemyError:
            if self.session_factory is None:
                await self.session.rollback()
            logger.exception(
                "Password reset token could not be stored",
                extra={"customer_id": str(delivery.customer_id)},
            )
            return False

        logger.info(
            "Password reset token issued",
            extra={
                "customer_id": str(delivery.customer_id),
                "expires_at": delivery.expires_at.isoformat(),
            },
        )
        return True

    async def deliver(self, delivery: PasswordResetDelivery) -> bool:
        """
        Store the token, then send the reset e-mail.

        Runs after the response has been sent. Failures are logged, never
        raised; no e-mail goes out for a token that was not stored.
        """
        if not await self.store(delivery):
            return False
        if self.mailer is None:
            logger.warning("No mailer configured; reset e-mail not sent")
            return False
        try:
            sent = await self.mailer.send_password_reset(
                to_email=delivery.to_email,
                reset_token=delivery.token,
                first_name=delivery.first_name,
            )
        except Exception:
            logger.exception(
                "Password reset e-mail delivery failed",
                extra={"email": mask_email(delivery.to_email)},
            )
            return False
        if not sent:
            logger.warning(
                "Password reset e-mail not sent",
                extra={"email": mask_email(delivery.to_email)},
            )
        return sent

    async def complete(self, token: str, new_password: str) -> str:
        """
        Consume a reset token and set a new password.

        Args:
            token: The token from the reset e-mail
            new_password: New plain text password (already length-checked)

        Returns:
            The account's e-mail address, for server-side logging only

        Raises:
            InvalidResetTokenError: Token unknown, consumed or expired
        """
        token_hash = TokenService.hash_token(token)
        now = self._clock()

        record = await self.session.scalar(
            select(PasswordResetToken).where(PasswordResetToken.token_hash == token_hash)
        )
        if record is None:
            raise InvalidResetTokenError(reason="unknown")
        if record.consumed:
            raise InvalidResetTokenError(reason="consumed")
        if _as_utc(record.expires_at) <= now:
            raise InvalidResetTokenError(reason="expired")

        customer = await self.credentials.get_customer_by_id(record.customer_id)
        if customer is None or not customer.is_active:
            raise InvalidResetTokenError(reason="account_unavailable")

        # bcrypt outside the transaction's write phase
        new_hash = await self.credentials.hasher.hash_async(new_password)

        try:
            # Conditional update: of two concurrent completions, only one
            # sees consumed = false.
            consumed = await self.session.execute(
                update(PasswordResetToken)
                .where(
                    PasswordResetToken.id == record.id,
                    PasswordResetToken.consumed.is_(False),
                )
                .values(consumed=True, consumed_at=now)
            )
            if consumed.rowcount != 1:
                await self.session.rollback()
                raise InvalidResetTokenError(reason="consumed_concurrently")

            if not await self.credentials.set_password_hash(customer.id, new_hash):
                await self.session.rollback()
                raise InvalidResetTokenError(reason="account_unavailable")

            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        logger.info("Password reset completed", extra={"customer_id": str(customer.id)})
        return customer.email
