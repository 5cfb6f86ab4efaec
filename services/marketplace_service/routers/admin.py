"""Admin endpoints: payment reconciliation, fulfilment and the reward catalog.

``require_admin`` accepts admins and service_role tokens, so the payment
collaborator reports outcomes through ``POST /payments/{id}/confirm``.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.rate_limit import admin_limit
from libs.db.session import get_async_db
from services.marketplace_service.models import PaymentStatus, RedemptionStatus
from services.marketplace_service.schemas import (
    OrderResponse,
    PaymentConfirmRequest,
    PaymentConfirmResponse,
    PaymentResponse,
    RedemptionResponse,
    RewardCreate,
    RewardResponse,
    RewardUpdate,
)
from services.marketplace_service.services import (
    order_ops,
    payment_ops,
    redemption_ops,
    reward_ops,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])
payments_admin_router = APIRouter(prefix="/payments", tags=["admin"])


# ============================================================================
# PAYMENTS
# ============================================================================


@router.get("/payments", response_model=list[PaymentResponse])
async def list_all_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """All payments, newest first."""
    return await payment_ops.list_payments(
        db, status=status_filter, skip=skip, limit=limit
    )


@payments_admin_router.post("/{payment_id}/confirm", response_model=PaymentConfirmResponse)
@admin_limit
async def confirm_payment(
    request: Request,
    payment_id: uuid.UUID,
    payload: PaymentConfirmRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Apply a verified/failed outcome. Replays answer 200 with already_processed."""
    result = await payment_ops.reconcile_payment(
        db,
        payment_id=payment_id,
        outcome=payload.status,
        method=payload.method,
        reference=payload.reference,
        reason=payload.reason,
    )
    logger.info(
        "Payment %s confirmed as %s by %s (replay=%s)",
        payment_id,
        payload.status.value,
        admin.user_id,
        result.already_processed,
    )
    return PaymentConfirmResponse(
        payment=PaymentResponse.model_validate(result.payment),
        already_processed=result.already_processed,
        points_awarded=result.points_awarded,
    )


@payments_admin_router.post("/{payment_id}/refund", response_model=PaymentConfirmResponse)
async def refund_payment(
    payment_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    result = await payment_ops.refund_payment(db, payment_id=payment_id)
    logger.info("Payment %s refunded by %s", payment_id, admin.user_id)
    return PaymentConfirmResponse(
        payment=PaymentResponse.model_validate(result.payment),
        already_processed=result.already_processed,
    )


# ============================================================================
# ORDERS
# ============================================================================


@router.post("/orders/{order_id}/fulfill", response_model=OrderResponse)
async def fulfill_order(
    order_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await order_ops.fulfill_order(db, order_id)


# ============================================================================
# REDEMPTIONS
# ============================================================================


@router.get("/redemptions", response_model=list[RedemptionResponse])
async def list_all_redemptions(
    status_filter: Optional[RedemptionStatus] = Query(None, alias="status"),
    product_id: Optional[uuid.UUID] = Query(None),
    ticket_id: Optional[uuid.UUID] = Query(None),
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Redemptions, optionally narrowed to rewards linked to a product or ticket."""
    return await redemption_ops.list_redemptions(
        db, status=status_filter, product_id=product_id, ticket_id=ticket_id
    )


@router.post("/redemptions/{redemption_id}/fulfill", response_model=RedemptionResponse)
async def fulfill_redemption(
    redemption_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await redemption_ops.fulfill(db, redemption_id=redemption_id)


@router.post("/redemptions/{redemption_id}/cancel", response_model=RedemptionResponse)
async def cancel_redemption(
    redemption_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await redemption_ops.cancel(db, redemption_id=redemption_id)


# ============================================================================
# REWARDS
# ============================================================================


@router.get("/rewards", response_model=list[RewardResponse])
async def list_all_rewards(
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """All non-deleted rewards, including inactive and expired ones."""
    return await reward_ops.list_rewards(db, include_inactive=True)


@router.post(
    "/rewards", response_model=RewardResponse, status_code=status.HTTP_201_CREATED
)
async def create_reward(
    payload: RewardCreate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await reward_ops.create_reward(db, payload.model_dump())


@router.patch("/rewards/{reward_id}", response_model=RewardResponse)
async def update_reward(
    reward_id: uuid.UUID,
    payload: RewardUpdate,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await reward_ops.update_reward(
        db, reward_id, payload.model_dump(exclude_unset=True)
    )


@router.delete("/rewards/{reward_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_reward(
    reward_id: uuid.UUID,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    await reward_ops.delete_reward(db, reward_id)
