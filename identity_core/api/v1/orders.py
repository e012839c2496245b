"""
Customer order endpoints. Customers only ever see their own orders.
"""

import uuid

from fastapi import APIRouter, Query

from identity_core.api.deps import (
    CustomerOrdersPrincipal,
    CustomerOwnerPrincipal,
    DbSession,
)
from identity_core.kernel.errors import NotFoundError
from identity_core.schemas.orders import (
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
)
from identity_core.services.orders import OrderReader

router = APIRouter()


@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    principal: CustomerOrdersPrincipal,
    db: DbSession,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the calling customer's orders."""
    orders, total = await OrderReader(db).list_for_customer(principal.subject_id, limit, offset)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )


@router.get("/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    principal: CustomerOrdersPrincipal,
    db: DbSession,
):
    """
    Get one of the caller's orders.

    Another customer's order is reported exactly like a missing one.
    """
    order = await OrderReader(db).get_for_customer(order_id, principal.subject_id)
    if order is None:
        raise NotFoundError("Order not found")
    return OrderDetailResponse(order=OrderResponse.model_validate(order))


@router.get("/customers/{customer_id}/orders", response_model=OrderListResponse)
async def list_customer_orders(
    customer_id: str,
    principal: CustomerOwnerPrincipal,
    db: DbSession,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List a customer's orders. The path customer must be the caller."""
    orders, total = await OrderReader(db).list_for_customer(customer_id, limit, offset)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
    )
