"""Unit tests for reward catalog administration."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from libs.common.errors import InvalidReward, RewardNotFound
from services.marketplace_service.models import Reward, RewardType
from services.marketplace_service.services import reward_ops
from sqlalchemy import func, select
from tests.conftest import persist
from tests.factories import ProductFactory, RewardFactory, TicketFactory


def _reward_data(**overrides):
    data = {
        "name": "Free drink",
        "description": "Any drink at the bar",
        "points_required": 50,
        "reward_type": RewardType.DISCOUNT,
        "discount_percent": 5,
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# create_reward
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_discount_reward(db_session):
    reward = await reward_ops.create_reward(db_session, _reward_data())

    assert reward.id is not None
    assert reward.is_active is True
    assert reward.is_deleted is False
    fetched = await reward_ops.get_reward(db_session, reward.id)
    assert fetched.name == "Free drink"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_product_reward_links_existing_product(db_session):
    product = await persist(db_session, ProductFactory.create())

    reward = await reward_ops.create_reward(
        db_session,
        _reward_data(
            reward_type=RewardType.PRODUCT, discount_percent=0, product_id=product.id
        ),
    )

    assert reward.product_id == product.id


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize(
    "overrides",
    [
        {"points_required": -1},
        {"discount_percent": 101},
        {"reward_type": RewardType.PRODUCT},
        {"reward_type": RewardType.TICKET},
        {"expires_at": datetime.now(timezone.utc) - timedelta(days=1)},
    ],
    ids=[
        "negative-cost",
        "discount-over-100",
        "product-without-link",
        "ticket-without-link",
        "already-expired",
    ],
)
async def test_create_reward_rejects_invalid_data(db_session, overrides):
    with pytest.raises(InvalidReward):
        await reward_ops.create_reward(db_session, _reward_data(**overrides))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_reward_rejects_missing_linked_item(db_session):
    with pytest.raises(InvalidReward):
        await reward_ops.create_reward(
            db_session,
            _reward_data(reward_type=RewardType.TICKET, ticket_id=uuid.uuid4()),
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_reward_rejects_two_links(db_session):
    product = await persist(db_session, ProductFactory.create())
    ticket = await persist(db_session, TicketFactory.create())

    with pytest.raises(InvalidReward):
        await reward_ops.create_reward(
            db_session,
            _reward_data(
                reward_type=RewardType.PRODUCT,
                product_id=product.id,
                ticket_id=ticket.id,
            ),
        )


# ---------------------------------------------------------------------------
# list / get
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_public_listing_hides_inactive_expired_and_deleted(db_session):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    visible = RewardFactory.create(name="Visible", points_required=20)
    await persist(
        db_session,
        visible,
        RewardFactory.create(name="Inactive", is_active=False),
        RewardFactory.create(name="Expired", expires_at=past),
        RewardFactory.create(name="Deleted", is_deleted=True),
    )

    public = await reward_ops.list_rewards(db_session)
    admin_view = await reward_ops.list_rewards(db_session, include_inactive=True)

    assert [r.name for r in public] == ["Visible"]
    assert {r.name for r in admin_view} == {"Visible", "Inactive", "Expired"}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_reward_public_view_hides_inactive(db_session):
    reward = await persist(db_session, RewardFactory.create(is_active=False))

    assert (await reward_ops.get_reward(db_session, reward.id)).id == reward.id
    with pytest.raises(RewardNotFound):
        await reward_ops.get_reward(db_session, reward.id, include_inactive=False)


# ---------------------------------------------------------------------------
# update / delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_reward_applies_partial_changes(db_session):
    reward = await persist(db_session, RewardFactory.create(points_required=100))

    updated = await reward_ops.update_reward(
        db_session, reward.id, {"points_required": 150, "is_active": False}
    )

    assert updated.points_required == 150
    assert updated.is_active is False
    assert updated.name == "10% off"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_update_reward_invalid_change_is_rolled_back(db_session):
    reward = await persist(db_session, RewardFactory.create(discount_percent=10))
    reward_id = reward.id

    with pytest.raises(InvalidReward):
        await reward_ops.update_reward(db_session, reward_id, {"discount_percent": 250})

    fetched = await reward_ops.get_reward(db_session, reward_id)
    assert fetched.discount_percent == 10


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delete_reward_tombstones_row(db_session):
    reward = await persist(db_session, RewardFactory.create())
    reward_id = reward.id

    await reward_ops.delete_reward(db_session, reward_id)

    with pytest.raises(RewardNotFound):
        await reward_ops.get_reward(db_session, reward_id)
    rows = await db_session.scalar(
        select(func.count()).select_from(Reward).where(Reward.id == reward_id)
    )
    assert rows == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_delete_unknown_reward_raises(db_session):
    with pytest.raises(RewardNotFound):
        await reward_ops.delete_reward(db_session, uuid.uuid4())
