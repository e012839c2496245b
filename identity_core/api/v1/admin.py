"""
Operator endpoints: admin login and store-wide listings.
"""

from fastapi import APIRouter, Depends, Query

from identity_core.api.deps import (
    Admin,
    AdminCustomersPrincipal,
    AdminOrdersPrincipal,
    Credentials,
    DbSession,
    RateLimit,
    Tokens,
)
from identity_core.kernel.errors import UnauthorizedError
from identity_core.kernel.identity.types import Role
from identity_core.kernel.ratelimit.limiter import RouteClass
from identity_core.logging_config import get_logger, mask_email
from identity_core.schemas.auth import (
    AdminAuthResponse,
    AdminCustomerResponse,
    AdminResponse,
    CustomerListResponse,
    LoginRequest,
)
from identity_core.schemas.orders import OrderListResponse, OrderResponse
from identity_core.services.orders import OrderReader

logger = get_logger(__name__)

router = APIRouter()

LOGIN_FAILED = "Login failed"


@router.post(
    "/auth/login",
    response_model=AdminAuthResponse,
    dependencies=[Depends(RateLimit(RouteClass.ADMIN_LOGIN))],
)
async def admin_login(
    data: LoginRequest,
    admin: Admin,
    credentials: Credentials,
    tokens: Tokens,
):
    """Authenticate the operator and return an admin token."""
    if admin is None:
        logger.warning("Admin login attempted but no admin account is configured")
        raise UnauthorizedError(LOGIN_FAILED, reason="admin_not_configured")

    check = await credentials.verify(data.email, data.password)
    if not check.matched or not check.identity.is_admin:
        logger.warning(
            "Admin login failed",
            extra={"email": mask_email(data.email), "reason": check.reason or "not_admin"},
        )
        raise UnauthorizedError(LOGIN_FAILED, reason=check.reason or "not_admin")

    identity = check.identity
    token = tokens.issue(identity.id, Role.ADMIN)
    logger.info("Admin logged in", extra={"subject_id": identity.id})

    return AdminAuthResponse(
        token=token.token,
        expires_in=token.expires_in,
        admin=AdminResponse(id=identity.id, email=identity.email, role=Role.ADMIN.value),
    )


@router.get("/orders", response_model=OrderListResponse)
async def list_all_orders(
    principal: AdminOrdersPrincipal,
    db: DbSession,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List orders across all customers."""
    orders, total = await OrderReader(db).list_all(limit, offset)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.get("/customers", response_model=CustomerListResponse)
async def list_customers(
    principal: AdminCustomersPrincipal,
    credentials: Credentials,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    customers, total = await credentials.list_customers(limit=limit, offset=offset)
    return CustomerListResponse(
        customers=[AdminCustomerResponse.model_validate(c) for c in customers],
        total=total,
    )
