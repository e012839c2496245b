"""
Credential store: verifies secrets and creates customer identities.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from identity_core.config import Settings, get_settings
from identity_core.kernel.errors import ConfigurationError, DuplicateEmailError
from identity_core.kernel.identity.password import (
    PasswordHasher,
    get_password_hasher,
    is_bcrypt_hash,
)
from identity_core.kernel.identity.types import Identity, Role, normalize_email
from identity_core.kernel.models.customer import Customer
from identity_core.logging_config import get_logger, mask_email

logger = get_logger(__name__)


@dataclass(frozen=True)
class CustomerProfile:
    first_name: str
    last_name: str
    phone: Optional[str] = None


@dataclass(frozen=True)
class CredentialCheck:
    """
    Outcome of a credential verification.

    ``reason`` says why a check failed (unknown_email, bad_password,
    inactive). It is for server logs only.
    """

    matched: bool
    identity: Optional[Identity] = None
    reason: Optional[str] = None


class AdminAccount:
    """The single operator identity, provisioned from environment configuration."""

    def __init__(self, email: str, password_hash: str, subject_id: str = "admin"):
        if not is_bcrypt_hash(password_hash):
            raise ConfigurationError("ADMIN_PASSWORD_HASH is not a bcrypt hash")
        self.identity = Identity(
            id=subject_id,
            email=normalize_email(email),
            role=Role.ADMIN,
            password_hash=password_hash,
            created_at=datetime.now(timezone.utc),
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> Optional["AdminAccount"]:
        settings = settings or get_settings()
        if not settings.admin_email.strip() and not settings.admin_password_hash.strip():
            return None
        if not settings.admin_configured:
            raise ConfigurationError("ADMIN_EMAIL and ADMIN_PASSWORD_HASH must be set together")
        return cls(
            email=settings.admin_email,
            password_hash=settings.admin_password_hash.strip(),
            subject_id=settings.admin_subject_id,
        )

    @property
    def email(self) -> str:
        return self.identity.email


class CredentialStore:
    """
    Verifies presented secrets and creates customer accounts.

    Verification costs one bcrypt comparison whether or not the e-mail is
    known, so response time does not reveal which addresses are registered.
    """

    def __init__(
        self,
        session: AsyncSession,
        admin: Optional[AdminAccount] = None,
        hasher: Optional[PasswordHasher] = None,
    ):
        self.session = session
        self.admin = admin
        self.hasher = hasher or get_password_hasher()

    def _is_admin_email(self, email: str) -> bool:
        return self.admin is not None and email == self.admin.email

    async def verify(self, email: str, candidate_secret: str) -> CredentialCheck:
        """
        Check a secret against the stored hash for an e-mail address.

        Args:
            email: Address as typed by the caller (normalized here)
            candidate_secret: Plain text secret

        Returns:
            CredentialCheck; ``identity`` is set only when ``matched``
        """
        email = normalize_email(email)

        if self._is_admin_email(email):
            identity = self.admin.identity
            if await self.hasher.verify_async(candidate_secret, identity.password_hash):
                return CredentialCheck(matched=True, identity=identity)
            return CredentialCheck(matched=False, reason="bad_password")

        customer = await self.get_customer_by_email(email)
        if customer is None:
            await self.hasher.verify_dummy_async(candidate_secret)
            return CredentialCheck(matched=False, reason="unknown_email")

        if not await self.hasher.verify_async(candidate_secret, customer.password_hash):
            return CredentialCheck(matched=False, reason="bad_password")

        if not customer.is_active:
            return CredentialCheck(matched=False, reason="inactive")

        return CredentialCheck(matched=True, identity=Identity.from_customer(customer))

    async def create(
        self,
        email: str,
        secret: str,
        profile: CustomerProfile,
    ) -> Identity:
        """
        Create a customer identity.

        The unique index on ``customers.email`` decides races: whichever insert
        commits first wins and the other raises DuplicateEmailError.

        Raises:
            DuplicateEmailError: If the address belongs to any identity
        """
        email = normalize_email(email)
        if self._is_admin_email(email):
            raise DuplicateEmailError(reason="admin_email")

        if await self.get_customer_by_email(email) is not None:
            raise DuplicateEmailError(reason="exists")

        # Hash before touching the transaction so no row lock spans bcrypt
        password_hash = await self.hasher.hash_async(secret)

        customer = Customer(
            email=email,
            password_hash=password_hash,
            first_name=profile.first_name,
            last_name=profile.last_name,
            phone=profile.phone,
        )
        self.session.add(customer)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateEmailError(reason="unique_violation") from e

        await self.session.refresh(customer)
        logger.info(
            "Customer identity created",
            extra={"customer_id": str(customer.id), "email": mask_email(email)},
        )
        return Identity.from_customer(customer)

    async def get_identity(self, identity_id: str) -> Optional[Identity]:
        """Resolve a token subject back to an identity."""
        if self.admin is not None and identity_id == self.admin.identity.id:
            return self.admin.identity
        customer = await self.get_customer_by_id(identity_id)
        if customer is None:
            return None
        return Identity.from_customer(customer)

    async def get_customer_by_id(self, customer_id: "str | uuid.UUID") -> Optional[Customer]:
        """Get a customer by ID. Unparseable ids simply do not match."""
        if not isinstance(customer_id, uuid.UUID):
            try:
                customer_id = uuid.UUID(str(customer_id))
            except ValueError:
                return None
        query = select(Customer).where(Customer.id == customer_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        """Get a customer by e-mail (normalized)."""
        query = select(Customer).where(Customer.email == normalize_email(email))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def set_password_hash(self, customer_id: uuid.UUID, password_hash: str) -> bool:
        """
        Replace a customer's password hash. Flushes but does not commit, so
        callers can combine it with other writes in one transaction.
        """
        result = await self.session.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(password_hash=password_hash)
        )
        return result.rowcount == 1

    async def record_login(self, identity: Identity) -> None:
        """Stamp last_login_at for customers; the admin account is not persisted."""
        if identity.role is not Role.CUSTOMER:
            return
        await self.session.execute(
            update(Customer)
            .where(Customer.id == uuid.UUID(identity.id))
            .values(last_login_at=datetime.now(timezone.utc))
        )
        await self.session.commit()

    async def update_profile(
        self,
        customer_id: str,
        profile: CustomerProfile,
    ) -> Optional[Identity]:
        """Update profile fields. Returns None if the customer does not exist."""
        customer = await self.get_customer_by_id(customer_id)
        if customer is None:
            return None
        customer.first_name = profile.first_name
        customer.last_name = profile.last_name
        customer.phone = profile.phone
        await self.session.commit()
        await self.session.refresh(customer)
        return Identity.from_customer(customer)

    async def list_customers(self, limit: int = 100, offset: int = 0) -> tuple[list[Customer], int]:
        """Page through customers, newest first."""
        total = await self.session.scalar(select(func.count()).select_from(Customer))
        query = (
            select(Customer)
            .order_by(Customer.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all()), int(total or 0)
