"""
Identity data models.
"""

from identity_core.kernel.models.base import Base, TimestampMixin, generate_uuid
from identity_core.kernel.models.customer import Customer
from identity_core.kernel.models.password_reset import PasswordResetToken
from identity_core.kernel.models.order import Order, OrderStatus

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    # Identity
    "Customer",
    "PasswordResetToken",
    # Collaborator resources
    "Order",
    "OrderStatus",
]
