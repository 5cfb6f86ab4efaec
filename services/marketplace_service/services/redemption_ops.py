"""Reward redemption: spend points on a reward, fulfil or cancel the claim.

Redeeming debits the points and records the redemption in one transaction;
if either step fails neither is kept. A pending redemption for a product or
ticket reward is used up when the buyer pays for an order containing that item.
"""

import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InsufficientPoints,
    InvalidStateTransition,
    RedemptionNotFound,
    RewardExpired,
    RewardInactive,
    RewardNotFound,
)
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.marketplace_service.models import (
    CartItem,
    ItemType,
    LoyaltyTransactionType,
    Redemption,
    RedemptionStatus,
    Reward,
)
from services.marketplace_service.services import loyalty_ops
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def redemption_key(redemption_id: uuid.UUID) -> str:
    return f"redemption-{redemption_id}"


def reversal_key(redemption_id: uuid.UUID) -> str:
    return f"redemption-{redemption_id}-reversal"


async def _record_redemption(
    db: AsyncSession, *, redemption_id: uuid.UUID, user_id: str, reward: Reward
) -> Redemption:
    redemption = Redemption(
        id=redemption_id,
        user_id=user_id,
        reward_id=reward.id,
        reward=reward,
        points_spent=reward.points_required,
        status=RedemptionStatus.PENDING,
    )
    db.add(redemption)
    await db.flush()
    return redemption


async def redeem(db: AsyncSession, *, user_id: str, reward_id: uuid.UUID) -> Redemption:
    """Spend the reward's current cost from the user's balance.

    Raises:
        RewardNotFound: reward missing or deleted.
        RewardInactive / RewardExpired: reward not redeemable right now.
        InsufficientPoints: balance (read under the account lock) below cost.
    """
    async with atomic(db):
        reward = await db.get(Reward, reward_id, populate_existing=True)
        if reward is None or reward.is_deleted:
            raise RewardNotFound(reward_id)
        if not reward.is_active:
            raise RewardInactive(reward_id)
        if reward.is_expired(utc_now()):
            raise RewardExpired(reward_id)

        account = await loyalty_ops.get_or_create_account(db, user_id, lock=True)
        cost = reward.points_required
        if account.loyalty_points < cost:
            raise InsufficientPoints(cost, account.loyalty_points)

        redemption_id = uuid.uuid4()
        if cost > 0:
            await loyalty_ops.debit(
                db,
                user_id=user_id,
                points=cost,
                idempotency_key=redemption_key(redemption_id),
                transaction_type=LoyaltyTransactionType.REDEMPTION,
                description=f"Redeemed reward {reward.name}",
                reference_type="redemption",
                reference_id=str(redemption_id),
            )
        redemption = await _record_redemption(
            db, redemption_id=redemption_id, user_id=user_id, reward=reward
        )

    logger.info(
        "User %s redeemed reward %s for %d points (redemption %s)",
        user_id,
        reward.id,
        redemption.points_spent,
        redemption.id,
    )
    return redemption


async def _lock_redemption(
    db: AsyncSession, redemption_id: uuid.UUID, user_id: Optional[str]
) -> Redemption:
    query = (
        select(Redemption)
        .where(Redemption.id == redemption_id)
        .with_for_update(of=Redemption)
        .execution_options(populate_existing=True)
    )
    if user_id is not None:
        query = query.where(Redemption.user_id == user_id)
    result = await db.execute(query)
    redemption = result.unique().scalar_one_or_none()
    if redemption is None:
        raise RedemptionNotFound(redemption_id)
    return redemption


async def fulfill(db: AsyncSession, *, redemption_id: uuid.UUID) -> Redemption:
    """Pending → Fulfilled. Points were already spent at redeem time."""
    async with atomic(db):
        redemption = await _lock_redemption(db, redemption_id, None)
        if redemption.status != RedemptionStatus.PENDING:
            raise InvalidStateTransition(
                "Redemption", redemption.status, RedemptionStatus.FULFILLED
            )
        redemption.status = RedemptionStatus.FULFILLED
        redemption.fulfilled_at = utc_now()
        await db.flush()

    logger.info("Redemption %s fulfilled", redemption_id)
    return redemption


async def cancel(
    db: AsyncSession, *, redemption_id: uuid.UUID, user_id: Optional[str] = None
) -> Redemption:
    """Pending → Cancelled, returning ``points_spent`` to the user.

    With ``user_id`` only the owner's redemption is visible.
    """
    async with atomic(db):
        redemption = await _lock_redemption(db, redemption_id, user_id)
        if redemption.status != RedemptionStatus.PENDING:
            raise InvalidStateTransition(
                "Redemption", redemption.status, RedemptionStatus.CANCELLED
            )
        redemption.status = RedemptionStatus.CANCELLED
        redemption.cancelled_at = utc_now()

        if redemption.points_spent > 0:
            await loyalty_ops.credit(
                db,
                user_id=redemption.user_id,
                points=redemption.points_spent,
                idempotency_key=reversal_key(redemption.id),
                transaction_type=LoyaltyTransactionType.REDEMPTION_REVERSAL,
                description=f"Points returned for cancelled redemption {redemption.id}",
                reference_type="redemption",
                reference_id=str(redemption.id),
            )
        await db.flush()

    logger.info(
        "Redemption %s cancelled, %d points returned",
        redemption_id,
        redemption.points_spent,
    )
    return redemption


async def fulfill_linked(
    db: AsyncSession, *, user_id: str, lines: list[CartItem]
) -> list[Redemption]:
    """Fulfil the user's pending redemptions for rewards linked to ordered items.

    One redemption is used per ordered item, oldest first. Runs inside the
    caller's transaction and only flushes.
    """
    product_ids = {
        line.item_id for line in lines if line.item_type == ItemType.PRODUCT
    }
    ticket_ids = {line.item_id for line in lines if line.item_type == ItemType.TICKET}
    links = []
    if product_ids:
        links.append(Reward.product_id.in_(product_ids))
    if ticket_ids:
        links.append(Reward.ticket_id.in_(ticket_ids))
    if not links:
        return []

    result = await db.execute(
        select(Redemption)
        .where(
            Redemption.user_id == user_id,
            Redemption.status == RedemptionStatus.PENDING,
            Redemption.reward.has(or_(*links)),
        )
        .order_by(Redemption.redeemed_at)
        .with_for_update(of=Redemption)
        .execution_options(populate_existing=True)
    )
    unclaimed = {(ItemType.PRODUCT, item_id) for item_id in product_ids}
    unclaimed |= {(ItemType.TICKET, item_id) for item_id in ticket_ids}

    fulfilled = []
    now = utc_now()
    for redemption in result.unique().scalars().all():
        reward = redemption.reward
        if reward.product_id is not None:
            link = (ItemType.PRODUCT, reward.product_id)
        else:
            link = (ItemType.TICKET, reward.ticket_id)
        if link not in unclaimed:
            continue
        unclaimed.discard(link)
        redemption.status = RedemptionStatus.FULFILLED
        redemption.fulfilled_at = now
        fulfilled.append(redemption)
        logger.info(
            "Redemption %s fulfilled by purchase of %s:%s",
            redemption.id,
            link[0].value,
            link[1],
        )
    await db.flush()
    return fulfilled


async def list_redemptions(
    db: AsyncSession,
    *,
    user_id: Optional[str] = None,
    status: Optional[RedemptionStatus] = None,
    product_id: Optional[uuid.UUID] = None,
    ticket_id: Optional[uuid.UUID] = None,
) -> list[Redemption]:
    query = select(Redemption).order_by(Redemption.redeemed_at.desc())
    if user_id is not None:
        query = query.where(Redemption.user_id == user_id)
    if status is not None:
        query = query.where(Redemption.status == status)
    if product_id is not None:
        query = query.where(Redemption.reward.has(Reward.product_id == product_id))
    if ticket_id is not None:
        query = query.where(Redemption.reward.has(Reward.ticket_id == ticket_id))
    result = await db.execute(query)
    return list(result.unique().scalars().all())
