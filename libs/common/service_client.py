"""Reusable async HTTP client for internal service-to-service communication.

The marketplace owns its own tables; anything owned elsewhere (customer
notifications) is reached through these helpers.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from libs.auth.dependencies import _service_role_jwt
from libs.common.config import get_settings
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)

# Default timeout for internal calls (seconds).
_DEFAULT_TIMEOUT = 10.0


async def internal_request(
    *,
    service_url: str,
    method: str,
    path: str,
    calling_service: str,
    json: Any = None,
    params: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
) -> httpx.Response:
    """Make an authenticated internal service-to-service HTTP call.

    Args:
        service_url: Base URL of the target service.
        method: HTTP method (GET, POST, ...).
        path: URL path on the target service.
        calling_service: Name of the calling service for the JWT "sub" claim.
        json: Optional JSON body.
        params: Optional query parameters.
        timeout: Request timeout in seconds.

    Raises:
        httpx.RequestError on connection failures.
    """
    url = f"{service_url}{path}"
    headers = {"Authorization": f"Bearer {_service_role_jwt(calling_service)}"}
    request_id = get_request_id()
    if request_id:
        headers["X-Request-ID"] = request_id
    headers["X-Caller-Service"] = calling_service

    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.request(
            method,
            url,
            headers=headers,
            json=json,
            params=params,
        )
    return response


async def internal_post(
    *,
    service_url: str,
    path: str,
    calling_service: str,
    json: Any = None,
    timeout: float = _DEFAULT_TIMEOUT,
) -> httpx.Response:
    """Convenience wrapper for POST requests."""
    return await internal_request(
        service_url=service_url,
        method="POST",
        path=path,
        calling_service=calling_service,
        json=json,
        timeout=timeout,
    )


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


async def send_order_confirmation(
    *,
    user_id: str,
    order_id: str,
    total_amount: str,
    calling_service: str,
) -> bool:
    """Ask the communications service to notify a user about a new order.

    Best effort: returns False (and logs) when disabled or on failure. Must
    only be called after the order transaction has committed.
    """
    settings = get_settings()
    if not settings.NOTIFICATIONS_ENABLED:
        return False

    try:
        resp = await internal_post(
            service_url=settings.COMMUNICATIONS_SERVICE_URL,
            path="/internal/notifications/order-confirmation",
            calling_service=calling_service,
            json={
                "user_id": user_id,
                "order_id": order_id,
                "total_amount": total_amount,
            },
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning(
            "Order confirmation for order %s not delivered: %s", order_id, exc
        )
        return False
    return True
