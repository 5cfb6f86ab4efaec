"""FastAPI application for the Marketplace Service."""

from fastapi import FastAPI
from libs.common.config import get_settings
from libs.common.error_handler import add_exception_handlers
from libs.common.logging import configure_logging
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.marketplace_service.routers import (
    admin_router,
    cart_router,
    loyalty_router,
    orders_router,
    payments_admin_router,
    payments_router,
    redemptions_router,
    rewards_router,
)
from slowapi.errors import RateLimitExceeded


def create_app() -> FastAPI:
    """Create and configure the Marketplace Service FastAPI app."""
    settings = get_settings()
    configure_logging()

    app = FastAPI(
        title="Marketplace Service",
        version="0.1.0",
        description="Tickets and merchandise - cart, checkout, payments, loyalty points and rewards.",
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app)

    # Domain errors map to their status codes; everything else is a logged 500
    add_exception_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": settings.SERVICE_NAME}

    # Member routes
    app.include_router(cart_router)
    app.include_router(orders_router)
    app.include_router(payments_router)
    app.include_router(loyalty_router)
    app.include_router(rewards_router)
    app.include_router(redemptions_router)

    # Admin / payment collaborator routes
    app.include_router(payments_admin_router)
    app.include_router(admin_router)

    return app


app = create_app()
