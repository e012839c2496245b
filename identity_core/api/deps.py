"""
FastAPI dependencies for authentication, authorization, rate limiting and
database sessions.

Long-lived services (token service, limiter, gate, mailer, admin account)
are built once in the application lifespan and read from ``app.state``.
"""

import ipaddress
import math
from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from identity_core.config import get_settings
from identity_core.database import get_db
from identity_core.kernel.errors import RateLimitedError
from identity_core.kernel.identity.credential_store import AdminAccount, CredentialStore
from identity_core.kernel.identity.jwt import TokenService
from identity_core.kernel.permissions.authorization import (
    AuthorizationGate,
    Principal,
    ProtectedRoute,
)
from identity_core.kernel.ratelimit.limiter import RateLimiter, RouteClass
from identity_core.logging_config import get_logger
from identity_core.services.email import EmailService

logger = get_logger(__name__)

# Retry-After sent when the limiter itself fails
FAIL_CLOSED_RETRY_AFTER = 60

# Security scheme
security = HTTPBearer(auto_error=False)


DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_admin_account(request: Request) -> Optional[AdminAccount]:
    return request.app.state.admin_account


def get_email_service(request: Request) -> EmailService:
    return request.app.state.email_service


def get_authorization_gate(request: Request) -> AuthorizationGate:
    return request.app.state.authorization_gate


Limiter = Annotated[RateLimiter, Depends(get_rate_limiter)]
Tokens = Annotated[TokenService, Depends(get_token_service)]
Admin = Annotated[Optional[AdminAccount], Depends(get_admin_account)]
Mailer = Annotated[EmailService, Depends(get_email_service)]
Gate = Annotated[AuthorizationGate, Depends(get_authorization_gate)]


def get_credential_store(db: DbSession, admin: Admin) -> CredentialStore:
    return CredentialStore(db, admin=admin)


Credentials = Annotated[CredentialStore, Depends(get_credential_store)]


def get_bearer_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Optional[str]:
    """Raw bearer token, or None when the header is absent or not a Bearer scheme."""
    if not credentials:
        return None
    return credentials.credentials


BearerCredential = Annotated[Optional[str], Depends(get_bearer_token)]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def _is_trusted(host: str, trusted: list[str]) -> bool:
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return host in trusted
    for entry in trusted:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            continue
    return False


def get_client_ip(request: Request, trusted_proxies: Optional[list[str]] = None) -> Optional[str]:
    """
    Extract client IP from request.

    X-Forwarded-For is only read when the socket peer is a trusted proxy.
    The header is then walked right to left, skipping trusted hops, and the
    first untrusted address is the client.
    """
    if trusted_proxies is None:
        trusted_proxies = get_settings().trusted_proxies
    peer = request.client.host if request.client else None
    if peer is None or not _is_trusted(peer, trusted_proxies):
        return peer

    forwarded = request.headers.get("X-Forwarded-For")
    if not forwarded:
        return peer
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if not _is_trusted(hop, trusted_proxies):
            return hop
    return hops[0] if hops else peer


class RateLimit:
    """
    Dependency class that admits one request against a route class's window.

    Usage:
        @router.post("/login", dependencies=[Depends(RateLimit(RouteClass.LOGIN))])
        async def login(...):
            ...

    Runs before the request body is processed. If the limiter errors the
    request is denied.
    """

    def __init__(self, route_class: RouteClass):
        self.route_class = route_class

    async def __call__(self, request: Request, limiter: Limiter) -> None:
        if not get_settings().rate_limit_enabled:
            return

        client_key = get_client_ip(request) or "unknown"
        try:
            decision = limiter.admit_route(client_key, self.route_class)
        except Exception:
            logger.exception(
                "Rate limiter failed; denying request",
                extra={"route_class": self.route_class.value},
            )
            raise RateLimitedError(retry_after=FAIL_CLOSED_RETRY_AFTER)

        if not decision.allowed:
            config = limiter.config_for(self.route_class)
            raise RateLimitedError(
                config.message,
                retry_after=decision.retry_after_seconds or math.ceil(config.window_seconds),
            )


class RequireRole:
    """
    Dependency class that runs the authorization gate for a protected route.

    Usage:
        @router.get("/customers/{customer_id}/orders")
        async def list_customer_orders(
            customer_id: str,
            principal: Annotated[
                Principal,
                Depends(RequireRole(ProtectedRoute.CUSTOMER_ORDERS, owner_param="customer_id")),
            ],
        ):
            ...

    With ``owner_param`` the named path parameter is treated as the owning
    customer id and checked against the token subject.
    """

    def __init__(self, route: ProtectedRoute, owner_param: Optional[str] = None):
        self.route = route
        self.owner_param = owner_param

    async def __call__(
        self,
        request: Request,
        gate: Gate,
        token: BearerCredential,
    ) -> Principal:
        owner_id = None
        if self.owner_param:
            owner_id = request.path_params.get(self.owner_param)
        return gate.authorize(self.route, token, resource_owner_id=owner_id)


CustomerProfilePrincipal = Annotated[Principal, Depends(RequireRole(ProtectedRoute.CUSTOMER_PROFILE))]
CustomerOrdersPrincipal = Annotated[Principal, Depends(RequireRole(ProtectedRoute.CUSTOMER_ORDERS))]
CustomerOwnerPrincipal = Annotated[
    Principal,
    Depends(RequireRole(ProtectedRoute.CUSTOMER_ORDERS, owner_param="customer_id")),
]
AdminOrdersPrincipal = Annotated[Principal, Depends(RequireRole(ProtectedRoute.ADMIN_ORDERS))]
AdminCustomersPrincipal = Annotated[Principal, Depends(RequireRole(ProtectedRoute.ADMIN_CUSTOMERS))]
