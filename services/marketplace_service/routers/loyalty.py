"""Loyalty balance, reward catalog and redemption endpoints for members."""

import uuid

from fastapi import APIRouter, Depends, Query, Request, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.rate_limit import checkout_limit
from libs.db.session import get_async_db
from services.marketplace_service.schemas import (
    LoyaltyBalanceResponse,
    LoyaltyTransactionListResponse,
    LoyaltyTransactionResponse,
    RedemptionResponse,
    RewardResponse,
)
from services.marketplace_service.services import (
    loyalty_ops,
    redemption_ops,
    reward_ops,
)
from sqlalchemy.ext.asyncio import AsyncSession

loyalty_router = APIRouter(prefix="/loyalty", tags=["loyalty"])
rewards_router = APIRouter(prefix="/rewards", tags=["rewards"])
redemptions_router = APIRouter(prefix="/redemptions", tags=["rewards"])


# ---------------------------------------------------------------------------
# Loyalty
# ---------------------------------------------------------------------------


@loyalty_router.get("/me", response_model=LoyaltyBalanceResponse)
async def get_my_points(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Current point balance (zero when the user has never earned points)."""
    account = await loyalty_ops.get_account(db, current_user.user_id)
    if account is None:
        return LoyaltyBalanceResponse(user_id=current_user.user_id)
    return LoyaltyBalanceResponse(
        user_id=account.user_id,
        loyalty_points=account.loyalty_points,
        lifetime_points_earned=account.lifetime_points_earned,
        lifetime_points_spent=account.lifetime_points_spent,
    )


@loyalty_router.get("/transactions", response_model=LoyaltyTransactionListResponse)
async def list_my_point_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    transactions, total = await loyalty_ops.list_transactions(
        db, current_user.user_id, skip=skip, limit=limit
    )
    return LoyaltyTransactionListResponse(
        transactions=[
            LoyaltyTransactionResponse.model_validate(txn) for txn in transactions
        ],
        total=total,
        skip=skip,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


@rewards_router.get("", response_model=list[RewardResponse])
async def list_available_rewards(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Active, unexpired rewards."""
    return await reward_ops.list_rewards(db)


@rewards_router.get("/{reward_id}", response_model=RewardResponse)
async def get_available_reward(
    reward_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await reward_ops.get_reward(db, reward_id, include_inactive=False)


@rewards_router.post(
    "/{reward_id}/redeem",
    response_model=RedemptionResponse,
    status_code=status.HTTP_201_CREATED,
)
@checkout_limit
async def redeem_reward(
    request: Request,
    reward_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Spend points on a reward. Points and the redemption are saved together."""
    return await redemption_ops.redeem(
        db, user_id=current_user.user_id, reward_id=reward_id
    )


# ---------------------------------------------------------------------------
# Redemptions
# ---------------------------------------------------------------------------


@redemptions_router.get("/me", response_model=list[RedemptionResponse])
async def list_my_redemptions(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await redemption_ops.list_redemptions(db, user_id=current_user.user_id)


@redemptions_router.post("/{redemption_id}/cancel", response_model=RedemptionResponse)
async def cancel_my_redemption(
    redemption_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Cancel a pending redemption; its points are returned."""
    return await redemption_ops.cancel(
        db, redemption_id=redemption_id, user_id=current_user.user_id
    )
