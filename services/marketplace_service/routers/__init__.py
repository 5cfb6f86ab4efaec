"""Marketplace service routers package."""

from services.marketplace_service.routers.admin import payments_admin_router
from services.marketplace_service.routers.admin import router as admin_router
from services.marketplace_service.routers.cart import router as cart_router
from services.marketplace_service.routers.loyalty import (
    loyalty_router,
    redemptions_router,
    rewards_router,
)
from services.marketplace_service.routers.orders import (
    orders_router,
    payments_router,
)

__all__ = [
    "admin_router",
    "cart_router",
    "loyalty_router",
    "orders_router",
    "payments_admin_router",
    "payments_router",
    "redemptions_router",
    "rewards_router",
]
