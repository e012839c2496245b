"""
Order schemas.
"""

import uuid
from datetime import datetime
from typing import List

from identity_core.schemas.common import CamelModel


class OrderResponse(CamelModel):
    id: uuid.UUID
    customer_id: uuid.UUID
    order_number: str
    status: str
    total_cents: int
    created_at: datetime


class OrderDetailResponse(CamelModel):
    order: OrderResponse


class OrderListResponse(CamelModel):
    """A page of orders with the unpaged total."""

    orders: List[OrderResponse]
    total: int
