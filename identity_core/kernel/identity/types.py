"""
Identity value types shared across the kernel.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from identity_core.kernel.models.customer import Customer


class Role(str, Enum):
    """Roles carried in the signed token payload."""
    ADMIN = "admin"
    CUSTOMER = "customer"


@dataclass(frozen=True)
class Identity:
    """An authenticated principal: the operator or one customer."""

    id: str
    email: str
    role: Role
    password_hash: str = field(repr=False)
    created_at: Optional[datetime] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def from_customer(cls, customer: Customer) -> "Identity":
        return cls(
            id=str(customer.id),
            email=customer.email,
            role=Role.CUSTOMER,
            password_hash=customer.password_hash,
            created_at=customer.created_at,
            first_name=customer.first_name,
            last_name=customer.last_name,
            phone=customer.phone,
        )


def normalize_email(email: str) -> str:
    """Trim and lowercase; the stored form of every e-mail address."""
    return email.strip().lower()
