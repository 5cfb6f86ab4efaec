"""
Model factories for creating valid test data.

Every factory produces a valid, insertable SQLAlchemy model instance.
Override any field via kwargs.

Usage:
    ticket = TicketFactory.create(quantity_available=3)
    db_session.add(ticket)
    await db_session.commit()
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _uuid() -> uuid.UUID:
    return uuid.uuid4()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _next_month() -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=30)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TicketFactory:
    @staticmethod
    def create(**overrides):
        from services.marketplace_service.models import Ticket

        defaults = {
            "id": _uuid(),
            "event_name": "Harbour Lights Festival",
            "ticket_type": "general",
            "event_starts_at": _next_month(),
            "price": Decimal("40.00"),
            "quantity_available": 100,
            "quantity_sold": 0,
            "limit_per_user": None,
            "points_earned_per_unit": 10,
            "is_deleted": False,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Ticket(**defaults)


class ProductFactory:
    @staticmethod
    def create(**overrides):
        from services.marketplace_service.models import Product

        defaults = {
            "id": _uuid(),
            "name": "Festival Tee",
            "sku": f"TEE-{uuid.uuid4().hex[:8].upper()}",
            "price": Decimal("25.00"),
            "quantity_available": 50,
            "quantity_sold": 0,
            "limit_per_user": None,
            "points_earned_per_unit": 5,
            "is_deleted": False,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Product(**defaults)


# ---------------------------------------------------------------------------
# Loyalty
# ---------------------------------------------------------------------------


class RewardFactory:
    @staticmethod
    def create(**overrides):
        from services.marketplace_service.models import Reward, RewardType

        defaults = {
            "id": _uuid(),
            "name": "10% off",
            "description": "Ten percent off your next order",
            "points_required": 100,
            "reward_type": RewardType.DISCOUNT,
            "discount_percent": 10,
            "expires_at": None,
            "is_active": True,
            "product_id": None,
            "ticket_id": None,
            "is_deleted": False,
            "created_at": _now(),
            "updated_at": _now(),
        }
        defaults.update(overrides)
        return Reward(**defaults)
