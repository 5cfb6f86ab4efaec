"""Payment reconciler: applies payment outcomes to orders, stock and loyalty.

Each reconciliation is one transaction holding the payment row lock, so a
duplicated confirmation either sees the earlier result (idempotent replay)
or waits for it. Loyalty points accrue exactly once per order.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    InvalidStateTransition,
    OrderNotFound,
    PaymentNotFound,
)
from libs.common.logging import get_logger
from libs.db.session import atomic
from services.marketplace_service.models import (
    CartItem,
    LoyaltyTransactionType,
    Order,
    OrderStatus,
    Payment,
    PaymentOutcome,
    PaymentStatus,
    catalog_model_for,
)
from services.marketplace_service.services import (
    inventory_ops,
    loyalty_ops,
    redemption_ops,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

# Card-like digit runs are never stored in full
_LONG_DIGIT_RUN = re.compile(r"\d{12,}")

CUSTOMER_CANCELLED_REASON = "Cancelled by customer"


def mask_reference(reference: Optional[str]) -> Optional[str]:
    """Mask digit runs of 12+ characters, keeping only the last four digits."""
    if reference is None:
        return None
    reference = reference.strip()
    if not reference:
        return None
    return _LONG_DIGIT_RUN.sub(
        lambda match: "*" * (len(match.group()) - 4) + match.group()[-4:], reference
    )


@dataclass
class ReconcileResult:
    payment: Payment
    already_processed: bool = False
    points_awarded: int = 0


def accrual_key(order_id: uuid.UUID) -> str:
    return f"order-{order_id}-accrual"


def refund_key(order_id: uuid.UUID) -> str:
    return f"order-{order_id}-refund"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_payment(
    db: AsyncSession, payment_id: uuid.UUID, *, user_id: Optional[str] = None
) -> Payment:
    """Fetch a payment; with ``user_id`` only the order owner may see it."""
    query = select(Payment).where(Payment.id == payment_id)
    if user_id is not None:
        query = query.join(Order, Order.id == Payment.order_id).where(
            Order.user_id == user_id
        )
    result = await db.execute(query)
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFound(payment_id)
    return payment


async def list_payments(
    db: AsyncSession,
    *,
    status: Optional[PaymentStatus] = None,
    skip: int = 0,
    limit: int = 50,
) -> list[Payment]:
    query = (
        select(Payment).order_by(Payment.created_at.desc()).offset(skip).limit(limit)
    )
    if status:
        query = query.where(Payment.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def _lock_payment(db: AsyncSession, payment_id: uuid.UUID) -> Payment:
    result = await db.execute(
        select(Payment)
        .where(Payment.id == payment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFound(payment_id)
    return payment


async def _lock_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound(order_id)
    return order


async def _order_lines(db: AsyncSession, order_id: uuid.UUID) -> list[CartItem]:
    result = await db.execute(
        select(CartItem)
        .where(CartItem.order_id == order_id, CartItem.is_deleted.is_(False))
        .order_by(CartItem.item_type, CartItem.item_id)
    )
    return list(result.scalars().all())


async def accrual_points(db: AsyncSession, lines: list[CartItem]) -> int:
    """Σ quantity × points_earned_per_unit, using the current catalog values."""
    total = 0
    for line in lines:
        model = catalog_model_for(line.item_type)
        per_unit = await db.scalar(
            select(model.points_earned_per_unit).where(model.id == line.item_id)
        )
        total += line.quantity * (per_unit or 0)
    return total


async def _release_lines(
    db: AsyncSession, lines: list[CartItem], *, reference_type: str, reference_id: str
) -> None:
    for line in lines:
        await inventory_ops.release(
            db,
            line.item_ref,
            line.quantity,
            reference_type=reference_type,
            reference_id=reference_id,
        )


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


async def _verify(db: AsyncSession, payment: Payment, order: Order) -> int:
    lines = await _order_lines(db, order.id)
    now = utc_now()

    payment.status = PaymentStatus.VERIFIED
    payment.verified_at = now
    order.status = OrderStatus.PAID
    order.paid_at = now

    points = await accrual_points(db, lines)
    if points > 0:
        await loyalty_ops.credit(
            db,
            user_id=order.user_id,
            points=points,
            idempotency_key=accrual_key(order.id),
            transaction_type=LoyaltyTransactionType.ACCRUAL,
            description=f"Points earned on order {order.order_number}",
            reference_type="order",
            reference_id=str(order.id),
        )
    await redemption_ops.fulfill_linked(db, user_id=order.user_id, lines=lines)
    return points


async def _fail(
    db: AsyncSession, payment: Payment, order: Order, reason: Optional[str]
) -> None:
    lines = await _order_lines(db, order.id)
    now = utc_now()

    payment.status = PaymentStatus.FAILED
    payment.failed_at = now
    payment.failure_reason = reason
    order.status = OrderStatus.CANCELLED
    order.cancelled_at = now

    await _release_lines(
        db, lines, reference_type="payment", reference_id=str(payment.id)
    )


async def reconcile_payment(
    db: AsyncSession,
    *,
    payment_id: uuid.UUID,
    outcome: PaymentOutcome,
    method: Optional[str] = None,
    reference: Optional[str] = None,
    reason: Optional[str] = None,
) -> ReconcileResult:
    """Apply a verified/failed outcome reported by the payment collaborator.

    Pending → Verified: order becomes Paid, loyalty points accrue once and
    pending redemptions of rewards linked to an ordered item are fulfilled.
    Pending → Failed: order becomes Cancelled and every line's stock is
    released. Repeating the outcome a payment already has is a no-op
    reported through ``already_processed``. Anything else raises
    InvalidStateTransition.
    """
    outcome = PaymentOutcome(outcome)
    target = PaymentStatus(outcome.value)

    async with atomic(db):
        payment = await _lock_payment(db, payment_id)

        if payment.status == target:
            logger.info(
                "Payment %s already %s; replay ignored", payment.id, target.value
            )
            return ReconcileResult(payment=payment, already_processed=True)

        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateTransition("Payment", payment.status, target)

        order = await _lock_order(db, payment.order_id)
        if order.status != OrderStatus.PENDING:
            order_target = (
                OrderStatus.PAID
                if outcome == PaymentOutcome.VERIFIED
                else OrderStatus.CANCELLED
            )
            raise InvalidStateTransition("Order", order.status, order_target)

        if method:
            payment.method = method
        if reference:
            payment.reference = mask_reference(reference)

        points = 0
        if outcome == PaymentOutcome.VERIFIED:
            points = await _verify(db, payment, order)
        else:
            await _fail(db, payment, order, reason)
        await db.flush()

    logger.info(
        "Payment %s reconciled → %s (order %s, %d points awarded)",
        payment.id,
        payment.status.value,
        order.id,
        points,
    )
    return ReconcileResult(payment=payment, points_awarded=points)


async def refund_payment(
    db: AsyncSession, *, payment_id: uuid.UUID
) -> ReconcileResult:
    """Refund a verified payment: release stock and reverse the accrual (clamped)."""
    async with atomic(db):
        payment = await _lock_payment(db, payment_id)

        if payment.status == PaymentStatus.REFUNDED:
            return ReconcileResult(payment=payment, already_processed=True)
        if payment.status != PaymentStatus.VERIFIED:
            raise InvalidStateTransition(
                "Payment", payment.status, PaymentStatus.REFUNDED
            )

        order = await _lock_order(db, payment.order_id)
        if order.status not in (OrderStatus.PAID, OrderStatus.FULFILLED):
            raise InvalidStateTransition("Order", order.status, OrderStatus.REFUNDED)

        lines = await _order_lines(db, order.id)
        now = utc_now()
        payment.status = PaymentStatus.REFUNDED
        payment.refunded_at = now
        order.status = OrderStatus.REFUNDED
        order.refunded_at = now

        await _release_lines(
            db, lines, reference_type="refund", reference_id=str(payment.id)
        )

        accrued = await loyalty_ops.find_transaction(db, accrual_key(order.id))
        if accrued and accrued.amount > 0:
            await loyalty_ops.debit(
                db,
                user_id=order.user_id,
                points=accrued.amount,
                idempotency_key=refund_key(order.id),
                transaction_type=LoyaltyTransactionType.REFUND_REVERSAL,
                description=f"Points reversed for refunded order {order.order_number}",
                reference_type="order",
                reference_id=str(order.id),
            )
        await db.flush()

    logger.info("Payment %s refunded (order %s)", payment.id, order.id)
    return ReconcileResult(payment=payment)


async def cancel_order(
    db: AsyncSession, *, order_id: uuid.UUID, user_id: str
) -> Order:
    """Owner withdraws an unpaid order: the payment fails and stock is released.

    Raises:
        OrderNotFound: no such order for this user.
        InvalidStateTransition: the order or its payment is no longer pending.
    """
    async with atomic(db):
        payment_id = await db.scalar(
            select(Payment.id)
            .join(Order, Order.id == Payment.order_id)
            .where(Order.id == order_id, Order.user_id == user_id)
        )
        if payment_id is None:
            raise OrderNotFound(order_id)
        # Payment before order, the same lock order as reconcile_payment
        payment = await _lock_payment(db, payment_id)
        order = await _lock_order(db, order_id)
        if (
            order.status != OrderStatus.PENDING
            or payment.status != PaymentStatus.PENDING
        ):
            raise InvalidStateTransition("Order", order.status, OrderStatus.CANCELLED)

        await _fail(db, payment, order, CUSTOMER_CANCELLED_REASON)
        await db.flush()

    logger.info("Order %s cancelled by its owner", order.order_number)
    return order


async def update_payment_details(
    db: AsyncSession,
    *,
    user_id: str,
    payment_id: uuid.UUID,
    method: Optional[str] = None,
    reference: Optional[str] = None,
) -> Payment:
    """Let the order owner change method/reference while the payment is pending."""
    async with atomic(db):
        await get_payment(db, payment_id, user_id=user_id)
        payment = await _lock_payment(db, payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidStateTransition(
                "Payment", payment.status, PaymentStatus.PENDING
            )
        if method:
            payment.method = method
        if reference is not None:
            payment.reference = mask_reference(reference)
        await db.flush()

    return payment
