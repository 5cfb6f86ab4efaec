"""Inventory ledger: atomic stock reservation and release for tickets and products.

Counters only change through single conditional UPDATE statements, so two
transactions can never both take the last unit. Nothing here commits: the
calling use case owns the transaction and a rollback undoes every
reservation made inside it.
"""

from typing import NamedTuple, Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import InsufficientStock, InvalidQuantity, ItemNotFound
from libs.common.logging import get_logger
from services.marketplace_service.models import (
    CatalogItem,
    InventoryMovement,
    InventoryMovementType,
    ItemRef,
    ItemType,
)
from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class StockLevel(NamedTuple):
    available: int
    sold: int
    is_deleted: bool


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def load_item(
    db: AsyncSession, ref: ItemRef, *, include_deleted: bool = False
) -> CatalogItem:
    """Fetch the catalog row behind a reference, or raise ItemNotFound."""
    model = ref.model
    # Counters are updated with bulk statements; never trust a cached copy
    item = await db.get(model, ref.item_id, populate_existing=True)
    if item is None or (item.is_deleted and not include_deleted):
        raise ItemNotFound(ItemType(ref.item_type).value, ref.item_id)
    return item


async def get_stock(db: AsyncSession, ref: ItemRef) -> StockLevel:
    """Read the current counters straight from the row (bypasses the identity map)."""
    model = ref.model
    result = await db.execute(
        select(
            model.quantity_available, model.quantity_sold, model.is_deleted
        ).where(model.id == ref.item_id)
    )
    row = result.one_or_none()
    if row is None:
        raise ItemNotFound(ItemType(ref.item_type).value, ref.item_id)
    return StockLevel(row.quantity_available, row.quantity_sold, row.is_deleted)


async def _available_for_error(db: AsyncSession, ref: ItemRef) -> int:
    model = ref.model
    result = await db.execute(
        select(model.quantity_available, model.is_deleted).where(
            model.id == ref.item_id
        )
    )
    row = result.one_or_none()
    if row is None or row.is_deleted:
        return 0
    return row.quantity_available


# ---------------------------------------------------------------------------
# Reserve / release
# ---------------------------------------------------------------------------


async def reserve(
    db: AsyncSession,
    ref: ItemRef,
    quantity: int,
    *,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> None:
    """Move ``quantity`` units from available to sold, or raise InsufficientStock.

    Tombstoned and missing items behave as having zero stock.
    """
    if quantity < 1:
        raise InvalidQuantity(quantity)

    model = ref.model
    result = await db.execute(
        update(model)
        .where(
            model.id == ref.item_id,
            model.is_deleted.is_(False),
            model.quantity_available >= quantity,
        )
        .values(
            quantity_available=model.quantity_available - quantity,
            quantity_sold=model.quantity_sold + quantity,
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        available = await _available_for_error(db, ref)
        logger.info(
            "Reservation refused for %s: requested %d, available %d",
            ref,
            quantity,
            available,
        )
        raise InsufficientStock(
            ItemType(ref.item_type).value, ref.item_id, quantity, available
        )

    db.add(
        InventoryMovement(
            item_type=ref.item_type,
            item_id=ref.item_id,
            movement_type=InventoryMovementType.RESERVATION,
            quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
        )
    )
    await db.flush()
    logger.info("Reserved %d of %s (%s=%s)", quantity, ref, reference_type, reference_id)


async def release(
    db: AsyncSession,
    ref: ItemRef,
    quantity: int,
    *,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> int:
    """Return up to ``quantity`` units from sold to available.

    Sold never drops below zero; returns the number of units actually released.
    """
    if quantity < 1:
        raise InvalidQuantity(quantity)

    model = ref.model
    # Lock the row so the released count we report matches what the UPDATE moves
    result = await db.execute(
        select(model.quantity_sold)
        .where(model.id == ref.item_id)
        .with_for_update()
    )
    sold = result.scalar_one_or_none()
    if sold is None:
        raise ItemNotFound(ItemType(ref.item_type).value, ref.item_id)

    released = min(quantity, sold)
    if released == 0:
        logger.warning(
            "Release of %d for %s skipped: nothing sold", quantity, ref
        )
        return 0

    clamped = case(
        (model.quantity_sold >= quantity, quantity), else_=model.quantity_sold
    )
    await db.execute(
        update(model)
        .where(model.id == ref.item_id)
        .values(
            quantity_available=model.quantity_available + clamped,
            quantity_sold=model.quantity_sold - clamped,
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    db.add(
        InventoryMovement(
            item_type=ref.item_type,
            item_id=ref.item_id,
            movement_type=InventoryMovementType.RELEASE,
            quantity=released,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
        )
    )
    await db.flush()
    logger.info(
        "Released %d of %s (requested %d, %s=%s)",
        released,
        ref,
        quantity,
        reference_type,
        reference_id,
    )
    return released
