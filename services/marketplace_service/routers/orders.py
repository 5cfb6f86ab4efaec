"""Member-facing order and payment endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.db.session import get_async_db
from services.marketplace_service.models import OrderStatus
from services.marketplace_service.schemas import (
    OrderResponse,
    PaymentResponse,
    PaymentUpdateRequest,
)
from services.marketplace_service.services import order_ops, payment_ops
from sqlalchemy.ext.asyncio import AsyncSession

orders_router = APIRouter(prefix="/orders", tags=["orders"])
payments_router = APIRouter(prefix="/payments", tags=["payments"])


# ============================================================================
# ORDERS
# ============================================================================


@orders_router.get("", response_model=list[OrderResponse])
async def list_my_orders(
    status: Optional[OrderStatus] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """List the current user's orders, newest first."""
    return await order_ops.list_orders(
        db, current_user.user_id, status=status, skip=skip, limit=limit
    )


@orders_router.get("/{order_id}", response_model=OrderResponse)
async def get_my_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_ops.get_order(db, order_id, user_id=current_user.user_id)


@orders_router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_my_order(
    order_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Withdraw an unpaid order and release its reserved stock."""
    await payment_ops.cancel_order(
        db, order_id=order_id, user_id=current_user.user_id
    )
    return await order_ops.get_order(db, order_id, user_id=current_user.user_id)


# ============================================================================
# PAYMENTS
# ============================================================================


@payments_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_my_payment(
    payment_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await payment_ops.get_payment(
        db, payment_id, user_id=current_user.user_id
    )


@payments_router.patch("/{payment_id}", response_model=PaymentResponse)
async def update_my_payment(
    payment_id: uuid.UUID,
    payload: PaymentUpdateRequest,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Change method/reference while the payment is still pending."""
    return await payment_ops.update_payment_details(
        db,
        user_id=current_user.user_id,
        payment_id=payment_id,
        method=payload.method,
        reference=payload.reference,
    )
