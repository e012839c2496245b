"""
Read-only access to orders owned by the order-management collaborator.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from identity_core.kernel.models.order import Order


def _as_uuid(value: "str | uuid.UUID") -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class OrderReader:
    """Order queries. Customer-facing lookups filter on the owner in the query."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_customer(
        self,
        order_id: uuid.UUID,
        customer_id: "str | uuid.UUID",
    ) -> Optional[Order]:
        """One order, only if the customer owns it."""
        customer_id = _as_uuid(customer_id)
        if customer_id is None:
            return None
        return await self.session.scalar(
            select(Order).where(Order.id == order_id, Order.customer_id == customer_id)
        )

    async def list_for_customer(
        self,
        customer_id: "str | uuid.UUID",
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Order], int]:
        """Orders for one customer, newest first. Unparseable ids have no orders."""
        customer_id = _as_uuid(customer_id)
        if customer_id is None:
            return [], 0
        return await self._page(Order.customer_id == customer_id, limit, offset)

    async def list_all(self, limit: int = 50, offset: int = 0) -> tuple[list[Order], int]:
        return await self._page(None, limit, offset)

    async def _page(self, condition, limit: int, offset: int) -> tuple[list[Order], int]:
        count_query = select(func.count()).select_from(Order)
        query = select(Order).order_by(Order.created_at.desc()).limit(limit).offset(offset)
        if condition is not None:
            count_query = count_query.where(condition)
            query = query.where(condition)
        total = await self.session.scalar(count_query)
        result = await self.session.execute(query)
        return list(result.scalars().all()), int(total or 0)
