"""
Identity kernel.

Framework-free core of the service:
- Identity (credential store, tokens, registration, password reset)
- Permissions (per-route authorization gate)
- Rate limiting (fixed-window counters)

Nothing in here imports FastAPI; the api package adapts it to HTTP.
"""

from identity_core.kernel.models import (
    Customer,
    PasswordResetToken,
    Order,
    OrderStatus,
)
from identity_core.kernel.identity.types import Identity, Role

__all__ = [
    "Customer",
    "PasswordResetToken",
    "Order",
    "OrderStatus",
    "Identity",
    "Role",
]
