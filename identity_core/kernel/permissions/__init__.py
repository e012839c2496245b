"""
Permission Core - per-route authorization.
"""

from identity_core.kernel.permissions.authorization import (
    AuthorizationGate,
    AuthState,
    Principal,
    ProtectedRoute,
    ROUTE_POLICIES,
)

__all__ = [
    "AuthorizationGate",
    "AuthState",
    "Principal",
    "ProtectedRoute",
    "ROUTE_POLICIES",
]
