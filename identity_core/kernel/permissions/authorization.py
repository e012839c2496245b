"""
Per-request authorization gate.

Each protected route class declares the role it requires in ROUTE_POLICIES.
The gate turns a presented bearer token into an AuthState, applies the
policy, and for resource-scoped customer routes checks ownership. Any
failure ends in REJECTED and raises before handler code runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from identity_core.kernel.errors import (
    ForbiddenError,
    TokenError,
    UnauthorizedError,
)
from identity_core.kernel.identity.jwt import TokenClaims, TokenService
from identity_core.kernel.identity.types import Role
from identity_core.logging_config import get_logger

logger = get_logger(__name__)


class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED_CUSTOMER = "authenticated_customer"
    AUTHENTICATED_ADMIN = "authenticated_admin"
    REJECTED = "rejected"


class ProtectedRoute(str, Enum):
    """Route classes that require a bearer token."""
    CUSTOMER_PROFILE = "customer.profile"
    CUSTOMER_ORDERS = "customer.orders"
    ADMIN_ORDERS = "admin.orders"
    ADMIN_CUSTOMERS = "admin.customers"


# Required role per protected route class. Roles are matched exactly:
# admin tokens do not open customer routes and vice versa.
ROUTE_POLICIES: dict[ProtectedRoute, Role] = {
    ProtectedRoute.CUSTOMER_PROFILE: Role.CUSTOMER,
    ProtectedRoute.CUSTOMER_ORDERS: Role.CUSTOMER,
    ProtectedRoute.ADMIN_ORDERS: Role.ADMIN,
    ProtectedRoute.ADMIN_CUSTOMERS: Role.ADMIN,
}

_STATE_FOR_ROLE = {
    Role.ADMIN: AuthState.AUTHENTICATED_ADMIN,
    Role.CUSTOMER: AuthState.AUTHENTICATED_CUSTOMER,
}


@dataclass(frozen=True)
class Principal:
    """The caller, as established by a verified token."""

    subject_id: str
    role: Role
    state: AuthState

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "Principal":
        return cls(
            subject_id=claims.subject_id,
            role=claims.role,
            state=_STATE_FOR_ROLE[claims.role],
        )


class AuthorizationGate:
    """Allow/deny decision for one request against one route class."""

    def __init__(
        self,
        tokens: TokenService,
        policies: Optional[dict[ProtectedRoute, Role]] = None,
    ):
        self.tokens = tokens
        self.policies = dict(policies or ROUTE_POLICIES)

    def authenticate(self, token: Optional[str]) -> tuple[AuthState, Optional[Principal]]:
        """
        Compute the request's authentication state from a bearer token.

        Absent, malformed, expired and badly signed tokens all land in
        UNAUTHENTICATED; the distinct kind is logged.
        """
        if not token:
            return AuthState.UNAUTHENTICATED, None
        try:
            claims = self.tokens.verify(token)
        except TokenError as e:
            logger.info(
                "Bearer token rejected",
                extra={"token_error": e.kind, "detail": e.reason},
            )
            return AuthState.UNAUTHENTICATED, None
        principal = Principal.from_claims(claims)
        return principal.state, principal

    def authorize(
        self,
        route: ProtectedRoute,
        token: Optional[str],
        resource_owner_id: Optional[str] = None,
    ) -> Principal:
        """
        Gate a request.

        Args:
            route: The protected route class being accessed
            token: Raw bearer token, or None if absent
            resource_owner_id: Owner of the addressed resource, for
                resource-scoped customer routes

        Returns:
            The authenticated Principal

        Raises:
            UnauthorizedError: No valid token
            ForbiddenError: Valid token with the wrong role or wrong owner
        """
        required = self.policies[route]
        state, principal = self.authenticate(token)

        if principal is None:
            raise UnauthorizedError(reason=f"{route.value}: {state.value}")

        if principal.role is not required:
            logger.warning(
                "Role check failed",
                extra={
                    "route": route.value,
                    "subject_id": principal.subject_id,
                    "role": principal.role.value,
                    "required_role": required.value,
                },
            )
            raise ForbiddenError(reason="role")

        if resource_owner_id is not None:
            self.check_owner(principal, resource_owner_id, route)

        return principal

    def check_owner(
        self,
        principal: Principal,
        resource_owner_id: str,
        route: Optional[ProtectedRoute] = None,
    ) -> None:
        """A customer may only touch their own resources. Runs after the role check."""
        if principal.role is Role.CUSTOMER and str(resource_owner_id) != principal.subject_id:
            logger.warning(
                "Ownership check failed",
                extra={
                    "route": route.value if route else None,
                    "subject_id": principal.subject_id,
                    "owner_id": str(resource_owner_id),
                },
            )
            raise ForbiddenError(reason="owner")
