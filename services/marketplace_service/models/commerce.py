"""Commerce models: carts, cart lines, orders and payments."""

import secrets
import string
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.marketplace_service.models.catalog import ItemRef
from services.marketplace_service.models.enums import (
    ItemType,
    OrderStatus,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy import false
from sqlalchemy.orm import Mapped, mapped_column, relationship

# ============================================================================
# CART MODELS
# ============================================================================


class Cart(Base):
    """A user's single shopping cart, created on first use."""

    __tablename__ = "marketplace_carts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self):
        return f"<Cart {self.user_id}>"


class CartItem(Base):
    """A line: in a cart before checkout, in an order after.

    Exactly one of ``cart_id``/``order_id`` is set. Removed lines are
    tombstoned, never deleted.
    """

    __tablename__ = "marketplace_cart_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("marketplace_carts.id"), nullable=True, index=True
    )
    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("marketplace_orders.id"), nullable=True, index=True
    )
    item_type: Mapped[ItemType] = mapped_column(
        SAEnum(
            ItemType,
            name="marketplace_item_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    item_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="cart_item_quantity_positive"),
        CheckConstraint(
            "(cart_id IS NOT NULL AND order_id IS NULL)"
            " OR (cart_id IS NULL AND order_id IS NOT NULL)",
            name="cart_item_single_parent",
        ),
        Index("ix_marketplace_cart_items_item", "item_type", "item_id"),
    )

    order: Mapped[Optional["Order"]] = relationship(
        back_populates="items", foreign_keys=[order_id]
    )

    @property
    def item_ref(self) -> ItemRef:
        return ItemRef(ItemType(self.item_type), self.item_id)

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.unit_price) * self.quantity

    def move_to_order(self, order_id: uuid.UUID) -> None:
        self.cart_id = None
        self.order_id = order_id

    def mark_deleted(self) -> None:
        self.is_deleted = True

    def __repr__(self):
        return f"<CartItem {self.item_type}:{self.item_id} x{self.quantity}>"


# ============================================================================
# ORDER MODELS
# ============================================================================


class Order(Base):
    """An order assembled from a cart at checkout."""

    __tablename__ = "marketplace_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(
        String(30), unique=True, index=True, nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(
            OrderStatus,
            name="marketplace_order_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=OrderStatus.PENDING,
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), default=Decimal("0"), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="order_total_nonneg"),
    )

    items: Mapped[list[CartItem]] = relationship(
        back_populates="order", foreign_keys=[CartItem.order_id]
    )
    payment: Mapped[Optional["Payment"]] = relationship(
        back_populates="order", uselist=False
    )

    @staticmethod
    def generate_order_number() -> str:
        """Generate a unique order number like BO-20260104-A1B2C3D4."""
        date_part = utc_now().strftime("%Y%m%d")
        random_part = "".join(
            secrets.choice(string.ascii_uppercase + string.digits) for _ in range(8)
        )
        return f"BO-{date_part}-{random_part}"

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status}>"


class Payment(Base):
    """Payment record for an order. One per order."""

    __tablename__ = "marketplace_payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("marketplace_orders.id"), unique=True, nullable=False
    )
    method: Mapped[str] = mapped_column(String(50), nullable=False)
    # Stored masked; see payment_ops.mask_reference
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus,
            name="marketplace_payment_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    order: Mapped[Order] = relationship(back_populates="payment")

    def __repr__(self):
        return f"<Payment {self.id} status={self.status}>"
