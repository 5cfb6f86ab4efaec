"""Cart manager: one cart per user, lines merged by item, soft stock checks.

Adding to a cart never reserves stock; reservation happens at checkout.
"""

import uuid
from decimal import Decimal
from typing import Optional

from libs.common.errors import CartItemNotFound, InsufficientStock, InvalidQuantity
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.marketplace_service.models import Cart, CartItem, ItemRef, ItemType
from services.marketplace_service.services.inventory_ops import load_item
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def cap_to_limit(quantity: int, limit: Optional[int]) -> int:
    """Clamp a line quantity to the per-user limit (None means unlimited)."""
    if limit is not None and quantity > limit:
        return limit
    return quantity


def subtotal(items: list[CartItem]) -> Decimal:
    return sum((item.line_total for item in items), Decimal("0"))


# ---------------------------------------------------------------------------
# Cart lookup
# ---------------------------------------------------------------------------


async def get_cart(db: AsyncSession, user_id: str) -> Optional[Cart]:
    result = await db.execute(select(Cart).where(Cart.user_id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_cart(
    db: AsyncSession, user_id: str, *, lock: bool = False
) -> Cart:
    """Return the user's cart, creating it on first use.

    With ``lock=True`` the cart row is held FOR UPDATE so concurrent edits
    (and a concurrent checkout) by the same user serialize.
    """
    query = select(Cart).where(Cart.user_id == user_id)
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    cart = result.scalar_one_or_none()
    if cart:
        return cart

    try:
        async with db.begin_nested():
            cart = Cart(user_id=user_id)
            db.add(cart)
    except IntegrityError:
        # Another request created it first
        result = await db.execute(query)
        cart = result.scalar_one()
    else:
        logger.info("Created cart %s for user %s", cart.id, user_id)
    return cart


async def list_active_items(db: AsyncSession, cart_id: uuid.UUID) -> list[CartItem]:
    result = await db.execute(
        select(CartItem)
        .where(CartItem.cart_id == cart_id, CartItem.is_deleted.is_(False))
        .order_by(CartItem.added_at, CartItem.id)
    )
    return list(result.scalars().all())


async def _find_active_line(
    db: AsyncSession, cart_id: uuid.UUID, ref: ItemRef
) -> Optional[CartItem]:
    result = await db.execute(
        select(CartItem).where(
            CartItem.cart_id == cart_id,
            CartItem.item_type == ref.item_type,
            CartItem.item_id == ref.item_id,
            CartItem.is_deleted.is_(False),
        )
    )
    return result.scalars().first()


async def _get_owned_line(
    db: AsyncSession, cart: Cart, cart_item_id: uuid.UUID
) -> CartItem:
    result = await db.execute(
        select(CartItem).where(
            CartItem.id == cart_item_id,
            CartItem.cart_id == cart.id,
            CartItem.is_deleted.is_(False),
        )
    )
    line = result.scalar_one_or_none()
    if line is None:
        raise CartItemNotFound(cart_item_id)
    return line


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


async def add_item(
    db: AsyncSession,
    *,
    user_id: str,
    ref: ItemRef,
    quantity: int,
) -> CartItem:
    """Add an item to the user's cart, merging with an existing line.

    The merged quantity is capped at the item's per-user limit and checked
    against current availability. The unit price is captured when the line
    is first created and kept on later merges.
    """
    if quantity < 1:
        raise InvalidQuantity(quantity)

    async with atomic(db):
        cart = await get_or_create_cart(db, user_id, lock=True)
        item = await load_item(db, ref)
        line = await _find_active_line(db, cart.id, ref)

        requested = quantity + (line.quantity if line else 0)
        new_quantity = cap_to_limit(requested, item.effective_limit)
        if new_quantity < requested:
            logger.info(
                "Capped %s for user %s at limit %d (requested %d)",
                ref,
                user_id,
                new_quantity,
                requested,
            )

        if new_quantity > item.quantity_available:
            raise InsufficientStock(
                ItemType(ref.item_type).value,
                ref.item_id,
                new_quantity,
                item.quantity_available,
            )

        if line:
            line.quantity = new_quantity
        else:
            line = CartItem(
                cart_id=cart.id,
                item_type=ref.item_type,
                item_id=ref.item_id,
                quantity=new_quantity,
                unit_price=item.price,
            )
            db.add(line)
        await db.flush()

    logger.info("Cart %s now holds %d of %s", cart.id, line.quantity, ref)
    return line


async def update_quantity(
    db: AsyncSession,
    *,
    user_id: str,
    cart_item_id: uuid.UUID,
    quantity: int,
) -> CartItem:
    """Set a line's quantity, capped at the item's per-user limit."""
    if quantity <= 0:
        raise InvalidQuantity(quantity)

    async with atomic(db):
        cart = await get_or_create_cart(db, user_id, lock=True)
        line = await _get_owned_line(db, cart, cart_item_id)
        item = await load_item(db, line.item_ref)
        line.quantity = cap_to_limit(quantity, item.effective_limit)
        await db.flush()

    return line


async def remove_item(
    db: AsyncSession, *, user_id: str, cart_item_id: uuid.UUID
) -> None:
    """Tombstone a line. Stock is untouched since nothing was reserved."""
    async with atomic(db):
        cart = await get_or_create_cart(db, user_id, lock=True)
        line = await _get_owned_line(db, cart, cart_item_id)
        line.mark_deleted()
        await db.flush()

    logger.info("Removed line %s from cart %s", cart_item_id, cart.id)


async def clear_lines(db: AsyncSession, cart: Cart) -> int:
    """Tombstone every active line in the cart (no commit)."""
    items = await list_active_items(db, cart.id)
    for line in items:
        line.mark_deleted()
    await db.flush()
    return len(items)


async def clear_cart(db: AsyncSession, *, user_id: str) -> int:
    async with atomic(db):
        cart = await get_or_create_cart(db, user_id, lock=True)
        cleared = await clear_lines(db, cart)

    logger.info("Cleared %d line(s) from cart %s", cleared, cart.id)
    return cleared
