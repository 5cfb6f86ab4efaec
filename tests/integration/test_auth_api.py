"""Integration tests for bearer-token authentication and request plumbing.

These drop the auth override so requests go through real JWT validation.
"""

from datetime import timedelta

import pytest
from jose import jwt
from libs.auth.dependencies import _service_role_jwt, get_current_user
from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from services.marketplace_service.app.main import app
from tests.conftest import persist
from tests.factories import TicketFactory


def _user_token(user_id: str, *, role: str = "authenticated", ttl_minutes: int = 5):
    settings = get_settings()
    now = utc_now()
    claims = {
        "sub": user_id,
        "email": f"{user_id}@example.com",
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
    }
    return jwt.encode(
        claims, settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM
    )


@pytest.fixture
def real_auth(client):
    """Remove the test user override for the duration of a test."""
    app.dependency_overrides.pop(get_current_user, None)
    return client


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health_check_is_public_and_tagged(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"] == "req-123"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_valid_token_identifies_user(real_auth):
    response = await real_auth.get(
        "/loyalty/me",
        headers={"Authorization": f"Bearer {_user_token('jwt-user')}"},
    )

    assert response.status_code == 200, response.text
    assert response.json()["user_id"] == "jwt-user"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_missing_token_is_rejected(real_auth):
    response = await real_auth.get("/cart")

    assert response.status_code in (401, 403)


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize(
    "token",
    [
        "not-a-jwt",
        jwt.encode({"sub": "forger", "role": "admin"}, "wrong-secret", algorithm="HS256"),
    ],
    ids=["garbage", "wrong-secret"],
)
async def test_invalid_token_is_rejected(real_auth, token):
    response = await real_auth.get(
        "/cart", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_expired_token_is_rejected(real_auth):
    token = _user_token("late-user", ttl_minutes=-1)

    response = await real_auth.get(
        "/cart", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.integration
async def test_service_role_token_can_confirm_payment(real_auth, db_session):
    ticket = await persist(db_session, TicketFactory.create())
    buyer = {"Authorization": f"Bearer {_user_token('jwt-buyer')}"}
    await real_auth.post(
        "/cart/items",
        json={"item_type": "ticket", "item_id": str(ticket.id), "quantity": 1},
        headers=buyer,
    )
    checkout = await real_auth.post(
        "/cart/checkout", json={"payment_method": "card"}, headers=buyer
    )
    payment_id = checkout.json()["payment_id"]

    as_buyer = await real_auth.post(
        f"/payments/{payment_id}/confirm", json={"status": "verified"}, headers=buyer
    )
    as_service = await real_auth.post(
        f"/payments/{payment_id}/confirm",
        json={"status": "verified"},
        headers={"Authorization": f"Bearer {_service_role_jwt('payments')}"},
    )

    assert as_buyer.status_code == 403
    assert as_service.status_code == 200, as_service.text
    assert as_service.json()["payment"]["status"] == "verified"
