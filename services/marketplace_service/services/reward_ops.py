"""Reward catalog administration."""

import uuid
from typing import Any

from libs.common.datetime_utils import has_passed, utc_now
from libs.common.errors import InvalidReward, ItemNotFound, RewardNotFound
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.marketplace_service.models import (
    ItemRef,
    ItemType,
    Reward,
    RewardType,
)
from services.marketplace_service.services.inventory_ops import load_item
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

_UPDATABLE_FIELDS = (
    "name",
    "description",
    "points_required",
    "reward_type",
    "discount_percent",
    "expires_at",
    "is_active",
    "product_id",
    "ticket_id",
)


async def _validate(db: AsyncSession, reward: Reward, *, check_expiry: bool) -> None:
    if reward.points_required is None or reward.points_required < 0:
        raise InvalidReward("points_required must be zero or more")
    if not 0 <= (reward.discount_percent or 0) <= 100:
        raise InvalidReward("discount_percent must be between 0 and 100")
    if reward.product_id and reward.ticket_id:
        raise InvalidReward("A reward can link a product or a ticket, not both")
    if check_expiry and reward.expires_at is not None:
        if has_passed(reward.expires_at):
            raise InvalidReward("expires_at must be in the future")

    reward_type = RewardType(reward.reward_type)
    if reward_type == RewardType.DISCOUNT and (reward.product_id or reward.ticket_id):
        raise InvalidReward("A discount reward cannot link a product or ticket")
    if reward_type == RewardType.PRODUCT and not reward.product_id:
        raise InvalidReward("A product reward needs product_id")
    if reward_type == RewardType.TICKET and not reward.ticket_id:
        raise InvalidReward("A ticket reward needs ticket_id")

    links = (
        (ItemType.PRODUCT, reward.product_id),
        (ItemType.TICKET, reward.ticket_id),
    )
    for item_type, item_id in links:
        if item_id is None:
            continue
        try:
            await load_item(db, ItemRef(item_type, item_id))
        except ItemNotFound as exc:
            raise InvalidReward(
                f"Linked {item_type.value} {item_id} does not exist"
            ) from exc


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_reward(
    db: AsyncSession, reward_id: uuid.UUID, *, include_inactive: bool = True
) -> Reward:
    reward = await db.get(Reward, reward_id)
    if reward is None or reward.is_deleted:
        raise RewardNotFound(reward_id)
    if not include_inactive and not reward.is_active:
        raise RewardNotFound(reward_id)
    return reward


async def list_rewards(
    db: AsyncSession, *, include_inactive: bool = False
) -> list[Reward]:
    """List rewards; the public view hides inactive and expired entries."""
    query = select(Reward).where(Reward.is_deleted.is_(False))
    if not include_inactive:
        query = query.where(
            Reward.is_active.is_(True),
            or_(Reward.expires_at.is_(None), Reward.expires_at > utc_now()),
        )
    result = await db.execute(query.order_by(Reward.points_required, Reward.name))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Admin mutations
# ---------------------------------------------------------------------------


async def create_reward(db: AsyncSession, data: dict[str, Any]) -> Reward:
    reward = Reward(
        name=data["name"],
        description=data.get("description"),
        points_required=data["points_required"],
        reward_type=data.get("reward_type") or RewardType.DISCOUNT,
        discount_percent=data.get("discount_percent") or 0,
        expires_at=data.get("expires_at"),
        is_active=data.get("is_active", True),
        product_id=data.get("product_id"),
        ticket_id=data.get("ticket_id"),
    )
    await _validate(db, reward, check_expiry=True)

    async with atomic(db):
        db.add(reward)
        await db.flush()

    logger.info(
        "Created reward %s (%s, %d points)",
        reward.id,
        reward.name,
        reward.points_required,
    )
    return reward


async def update_reward(
    db: AsyncSession, reward_id: uuid.UUID, changes: dict[str, Any]
) -> Reward:
    """Apply a partial update. Redemptions already made keep their points_spent."""
    async with atomic(db):
        reward = await get_reward(db, reward_id)
        for field in _UPDATABLE_FIELDS:
            if field in changes:
                setattr(reward, field, changes[field])
        await _validate(db, reward, check_expiry="expires_at" in changes)
        await db.flush()

    logger.info("Updated reward %s: %s", reward_id, sorted(changes))
    return reward


async def delete_reward(db: AsyncSession, reward_id: uuid.UUID) -> None:
    """Tombstone a reward; it disappears from listings and cannot be redeemed."""
    async with atomic(db):
        reward = await get_reward(db, reward_id)
        reward.is_deleted = True
        reward.is_active = False
        await db.flush()

    logger.info("Deleted reward %s", reward_id)

