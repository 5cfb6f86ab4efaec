"""Catalog models: the sellable rows the inventory ledger mutates.

Only the counters and the attributes checkout and loyalty consume live
here; catalog browsing and media are handled elsewhere.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.marketplace_service.models.enums import ItemType
from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, Numeric
from sqlalchemy import String, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column


class SellableMixin:
    """Stock counters, limits and pricing shared by tickets and products."""

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    quantity_available: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    quantity_sold: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    # None or 0 means no per-user cap
    limit_per_user: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    points_earned_per_unit: Mapped[int] = mapped_column(
        Integer, default=0, server_default="0", nullable=False
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    @property
    def effective_limit(self) -> Optional[int]:
        if self.limit_per_user and self.limit_per_user > 0:
            return self.limit_per_user
        return None


class Ticket(SellableMixin, Base):
    """Admission to an event."""

    __tablename__ = "marketplace_tickets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    ticket_type: Mapped[str] = mapped_column(
        String(50), default="general", nullable=False
    )
    event_starts_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("quantity_available >= 0", name="ticket_available_nonneg"),
        CheckConstraint("quantity_sold >= 0", name="ticket_sold_nonneg"),
        CheckConstraint("price >= 0", name="ticket_price_nonneg"),
    )

    @property
    def display_name(self) -> str:
        return f"{self.event_name} ({self.ticket_type})"

    def __repr__(self):
        return f"<Ticket {self.event_name} available={self.quantity_available}>"


class Product(SellableMixin, Base):
    """Merchandise item."""

    __tablename__ = "marketplace_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(64), unique=True, nullable=True)

    __table_args__ = (
        CheckConstraint("quantity_available >= 0", name="product_available_nonneg"),
        CheckConstraint("quantity_sold >= 0", name="product_sold_nonneg"),
        CheckConstraint("price >= 0", name="product_price_nonneg"),
    )

    @property
    def display_name(self) -> str:
        return self.name

    def __repr__(self):
        return f"<Product {self.name} available={self.quantity_available}>"


CatalogItem = Union[Ticket, Product]

_CATALOG_MODELS: dict[ItemType, type] = {
    ItemType.TICKET: Ticket,
    ItemType.PRODUCT: Product,
}


def catalog_model_for(item_type: ItemType) -> type:
    """Resolve an item type to its ORM model."""
    return _CATALOG_MODELS[ItemType(item_type)]


@dataclass(frozen=True)
class ItemRef:
    """Reference to a sellable item: a ticket or a product, by id."""

    item_type: ItemType
    item_id: uuid.UUID

    @property
    def model(self) -> type:
        return catalog_model_for(self.item_type)

    def sort_key(self) -> tuple[str, str]:
        return (ItemType(self.item_type).value, str(self.item_id))

    def __str__(self) -> str:
        return f"{ItemType(self.item_type).value}:{self.item_id}"
