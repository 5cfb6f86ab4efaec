"""Order assembler: turns a user's cart into a pending order and payment.

Checkout is one transaction. Lines are reserved in a fixed
``(item_type, item_id)`` order so concurrent checkouts over the same items
take row locks in the same sequence. Every line is attempted so a failure
reports every short item; if any line fails, the rollback undoes the
reservations already made and nothing else is written.
"""

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from libs.common.errors import CheckoutFailed, EmptyCart, InsufficientStock
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.marketplace_service.models import (
    CartItem,
    CheckoutState,
    Order,
    OrderStatus,
    Payment,
    PaymentStatus,
)
from services.marketplace_service.services import cart_ops, inventory_ops
from services.marketplace_service.services.payment_ops import mask_reference
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass
class CheckoutResult:
    order_id: uuid.UUID
    payment_id: uuid.UUID
    order_number: str
    total_amount: Decimal
    state: CheckoutState = CheckoutState.ASSEMBLED


def order_total(lines: list[CartItem]) -> Decimal:
    """Σ quantity × unit_price over the lines."""
    return sum(
        (Decimal(line.unit_price) * line.quantity for line in lines), Decimal("0")
    )


async def _reserve_lines(
    db: AsyncSession, lines: list[CartItem], order_id: uuid.UUID
) -> list[InsufficientStock]:
    failures: list[InsufficientStock] = []
    for line in sorted(lines, key=lambda line: line.item_ref.sort_key()):
        try:
            await inventory_ops.reserve(
                db,
                line.item_ref,
                line.quantity,
                reference_type="order",
                reference_id=str(order_id),
            )
        except InsufficientStock as exc:
            failures.append(exc)
    return failures


async def checkout(
    db: AsyncSession,
    *,
    user_id: str,
    payment_method: str,
    payment_reference: Optional[str] = None,
) -> CheckoutResult:
    """Reserve every cart line and assemble a pending order with its payment.

    Raises:
        EmptyCart: the cart has no active lines.
        CheckoutFailed: at least one line could not be reserved; carries one
            InsufficientStock per short line and state FAILED. No stock
            stays reserved.
    """
    state = CheckoutState.STARTED
    order_id = uuid.uuid4()

    try:
        async with atomic(db):
            cart = await cart_ops.get_or_create_cart(db, user_id, lock=True)
            lines = await cart_ops.list_active_items(db, cart.id)
            if not lines:
                raise EmptyCart()

            state = CheckoutState.RESERVING
            failures = await _reserve_lines(db, lines, order_id)
            if failures:
                state = CheckoutState.FAILED
                raise CheckoutFailed(failures, state=state)

            total = order_total(lines)
            order = Order(
                id=order_id,
                order_number=Order.generate_order_number(),
                user_id=user_id,
                status=OrderStatus.PENDING,
                total_amount=total,
            )
            db.add(order)
            await db.flush()

            for line in lines:
                line.move_to_order(order.id)

            payment = Payment(
                order_id=order.id,
                method=payment_method,
                reference=mask_reference(payment_reference),
                status=PaymentStatus.PENDING,
            )
            db.add(payment)
            await db.flush()

            # Lines already moved to the order; this catches anything left behind
            await cart_ops.clear_lines(db, cart)
    except CheckoutFailed as exc:
        logger.info(
            "Checkout for user %s ended %s: %d line(s) short",
            user_id,
            state.value,
            len(exc.failed_items),
        )
        raise

    state = CheckoutState.ASSEMBLED
    logger.info(
        "Checkout assembled order %s (%s) for user %s: %d line(s), total %s",
        order.order_number,
        order.id,
        user_id,
        len(lines),
        total,
    )
    return CheckoutResult(
        order_id=order.id,
        payment_id=payment.id,
        order_number=order.order_number,
        total_amount=total,
        state=state,
    )
