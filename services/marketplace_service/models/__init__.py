"""Marketplace Service models package.

Re-exports all models and enums so that:
  - ``from services.marketplace_service.models import Order`` works
  - Alembic env.py sees every table on import

When adding a new model, add both its import and its __all__ entry.
"""

from services.marketplace_service.models.catalog import (  # noqa: F401
    CatalogItem,
    ItemRef,
    Product,
    Ticket,
    catalog_model_for,
)
from services.marketplace_service.models.commerce import (  # noqa: F401
    Cart,
    CartItem,
    Order,
    Payment,
)

# Enums
from services.marketplace_service.models.enums import (  # noqa: F401
    CheckoutState,
    InventoryMovementType,
    ItemType,
    LoyaltyDirection,
    LoyaltyTransactionType,
    OrderStatus,
    PaymentOutcome,
    PaymentStatus,
    RedemptionStatus,
    RewardType,
)
from services.marketplace_service.models.inventory import (  # noqa: F401
    InventoryMovement,
)
from services.marketplace_service.models.loyalty import (  # noqa: F401
    LoyaltyAccount,
    LoyaltyTransaction,
    Redemption,
    Reward,
)

__all__ = [
    # Enums
    "CheckoutState",
    "InventoryMovementType",
    "ItemType",
    "LoyaltyDirection",
    "LoyaltyTransactionType",
    "OrderStatus",
    "PaymentOutcome",
    "PaymentStatus",
    "RedemptionStatus",
    "RewardType",
    # Catalog
    "CatalogItem",
    "ItemRef",
    "Product",
    "Ticket",
    "catalog_model_for",
    # Inventory
    "InventoryMovement",
    # Commerce
    "Cart",
    "CartItem",
    "Order",
    "Payment",
    # Loyalty
    "LoyaltyAccount",
    "LoyaltyTransaction",
    "Reward",
    "Redemption",
]
