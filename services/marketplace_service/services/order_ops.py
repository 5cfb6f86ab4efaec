"""Order queries and fulfilment."""

import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import InvalidStateTransition, OrderNotFound
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.marketplace_service.models import Order, OrderStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

logger = get_logger(__name__)


async def list_orders(
    db: AsyncSession,
    user_id: str,
    *,
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Order]:
    query = (
        select(Order)
        .where(Order.user_id == user_id)
        .options(selectinload(Order.items), selectinload(Order.payment))
        .order_by(Order.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    if status:
        query = query.where(Order.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_order(
    db: AsyncSession, order_id: uuid.UUID, *, user_id: Optional[str] = None
) -> Order:
    """Fetch an order with its lines and payment; ``user_id`` restricts to the owner."""
    query = (
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items), selectinload(Order.payment))
    )
    if user_id is not None:
        query = query.where(Order.user_id == user_id)
    result = await db.execute(query)
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


async def fulfill_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """Mark a paid order as fulfilled (tickets issued / merch handed over)."""
    async with atomic(db):
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotFound(order_id)
        if order.status != OrderStatus.PAID:
            raise InvalidStateTransition("Order", order.status, OrderStatus.FULFILLED)

        order.status = OrderStatus.FULFILLED
        order.fulfilled_at = utc_now()
        await db.flush()

    logger.info("Order %s fulfilled", order.order_number)
    return await get_order(db, order_id)
