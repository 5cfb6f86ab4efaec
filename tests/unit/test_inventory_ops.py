"""Unit tests for the inventory ledger (reserve / release)."""

import uuid

import pytest
from libs.common.errors import InsufficientStock, InvalidQuantity, ItemNotFound
from services.marketplace_service.models import (
    InventoryMovement,
    InventoryMovementType,
    ItemRef,
    ItemType,
)
from services.marketplace_service.services import inventory_ops
from sqlalchemy import select
from tests.conftest import persist
from tests.factories import ProductFactory, TicketFactory


async def _movements(db, item_id):
    result = await db.execute(
        select(InventoryMovement)
        .where(InventoryMovement.item_id == item_id)
        .order_by(InventoryMovement.created_at)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# reserve
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_moves_units_from_available_to_sold(db_session):
    ticket = await persist(db_session, TicketFactory.create(quantity_available=10))
    ref = ItemRef(ItemType.TICKET, ticket.id)

    await inventory_ops.reserve(
        db_session, ref, 4, reference_type="order", reference_id="order-1"
    )

    stock = await inventory_ops.get_stock(db_session, ref)
    assert stock.available == 6
    assert stock.sold == 4

    movements = await _movements(db_session, ticket.id)
    assert len(movements) == 1
    assert movements[0].movement_type == InventoryMovementType.RESERVATION
    assert movements[0].quantity == 4
    assert movements[0].reference_id == "order-1"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_exact_remaining_stock(db_session):
    product = await persist(db_session, ProductFactory.create(quantity_available=2))
    ref = ItemRef(ItemType.PRODUCT, product.id)

    await inventory_ops.reserve(db_session, ref, 2)

    stock = await inventory_ops.get_stock(db_session, ref)
    assert stock.available == 0
    assert stock.sold == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_more_than_available_raises_and_changes_nothing(db_session):
    ticket = await persist(db_session, TicketFactory.create(quantity_available=3))
    ref = ItemRef(ItemType.TICKET, ticket.id)

    with pytest.raises(InsufficientStock) as exc_info:
        await inventory_ops.reserve(db_session, ref, 5)

    assert exc_info.value.requested == 5
    assert exc_info.value.available == 3
    stock = await inventory_ops.get_stock(db_session, ref)
    assert (stock.available, stock.sold) == (3, 0)
    assert await _movements(db_session, ticket.id) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_tombstoned_item_reports_zero_available(db_session):
    ticket = await persist(
        db_session, TicketFactory.create(quantity_available=20, is_deleted=True)
    )
    ref = ItemRef(ItemType.TICKET, ticket.id)

    with pytest.raises(InsufficientStock) as exc_info:
        await inventory_ops.reserve(db_session, ref, 1)

    assert exc_info.value.available == 0


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("quantity", [0, -2])
async def test_reserve_rejects_non_positive_quantity(db_session, quantity):
    ticket = await persist(db_session, TicketFactory.create())

    with pytest.raises(InvalidQuantity):
        await inventory_ops.reserve(
            db_session, ItemRef(ItemType.TICKET, ticket.id), quantity
        )


# ---------------------------------------------------------------------------
# release
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_returns_units_to_available(db_session):
    ticket = await persist(
        db_session, TicketFactory.create(quantity_available=5, quantity_sold=5)
    )
    ref = ItemRef(ItemType.TICKET, ticket.id)

    released = await inventory_ops.release(
        db_session, ref, 3, reference_type="payment", reference_id="p-1"
    )

    assert released == 3
    stock = await inventory_ops.get_stock(db_session, ref)
    assert (stock.available, stock.sold) == (8, 2)
    movements = await _movements(db_session, ticket.id)
    assert movements[-1].movement_type == InventoryMovementType.RELEASE


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_is_clamped_at_sold(db_session):
    product = await persist(
        db_session, ProductFactory.create(quantity_available=1, quantity_sold=2)
    )
    ref = ItemRef(ItemType.PRODUCT, product.id)

    released = await inventory_ops.release(db_session, ref, 5)

    assert released == 2
    stock = await inventory_ops.get_stock(db_session, ref)
    assert (stock.available, stock.sold) == (3, 0)
    movements = await _movements(db_session, product.id)
    assert movements[-1].quantity == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_with_nothing_sold_is_a_noop(db_session):
    ticket = await persist(db_session, TicketFactory.create(quantity_available=4))
    ref = ItemRef(ItemType.TICKET, ticket.id)

    released = await inventory_ops.release(db_session, ref, 2)

    assert released == 0
    stock = await inventory_ops.get_stock(db_session, ref)
    assert (stock.available, stock.sold) == (4, 0)
    assert await _movements(db_session, ticket.id) == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_release_unknown_item_raises_not_found(db_session):
    with pytest.raises(ItemNotFound):
        await inventory_ops.release(
            db_session, ItemRef(ItemType.PRODUCT, uuid.uuid4()), 1
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reserve_then_release_restores_counters(db_session):
    ticket = await persist(db_session, TicketFactory.create(quantity_available=7))
    ref = ItemRef(ItemType.TICKET, ticket.id)

    await inventory_ops.reserve(db_session, ref, 3)
    await inventory_ops.release(db_session, ref, 3)

    stock = await inventory_ops.get_stock(db_session, ref)
    assert (stock.available, stock.sold) == (7, 0)
