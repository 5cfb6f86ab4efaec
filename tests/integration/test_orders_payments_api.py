"""Integration tests for orders, payments and payment reconciliation."""

import uuid
from decimal import Decimal

import pytest
from services.marketplace_service.app.main import app
from services.marketplace_service.models import ItemRef, ItemType
from services.marketplace_service.services import inventory_ops
from tests.conftest import make_user, override_auth, persist
from tests.factories import TicketFactory


async def _place_order(client, db_session, *, quantity=2, **ticket_fields):
    """Add a ticket to the current user's cart and check out."""
    ticket = await persist(db_session, TicketFactory.create(**ticket_fields))
    await client.post(
        "/cart/items",
        json={"item_type": "ticket", "item_id": str(ticket.id), "quantity": quantity},
    )
    response = await client.post("/cart/checkout", json={"payment_method": "card"})
    assert response.status_code == 201, response.text
    return ticket.id, response.json()


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_and_get_my_orders(client, db_session):
    _, checkout = await _place_order(client, db_session, price=Decimal("20.00"))

    listing = await client.get("/orders")
    assert listing.status_code == 200
    assert [o["id"] for o in listing.json()] == [checkout["order_id"]]

    detail = await client.get(f"/orders/{checkout['order_id']}")
    assert detail.status_code == 200
    data = detail.json()
    assert data["status"] == "pending"
    assert Decimal(data["total_amount"]) == Decimal("40.00")
    assert data["items"][0]["quantity"] == 2
    assert data["payment"]["status"] == "pending"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_orders_are_private(client, db_session):
    _, checkout = await _place_order(client, db_session)

    with override_auth(app, make_user(user_id="stranger")):
        response = await client.get(f"/orders/{checkout['order_id']}")
        payment = await client.get(f"/payments/{checkout['payment_id']}")

    assert response.status_code == 404
    assert payment.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_list_filters_by_status(client, db_session):
    await _place_order(client, db_session)

    response = await client.get("/orders", params={"status": "paid"})

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_my_pending_order(client, db_session, session_factory):
    """POST /orders/{id}/cancel: the payment fails and stock is released."""
    ticket_id, checkout = await _place_order(
        client, db_session, quantity=3, quantity_available=5
    )
    cancel_url = f"/orders/{checkout['order_id']}/cancel"

    with override_auth(app, make_user(user_id="stranger")):
        foreign = await client.post(cancel_url)
    response = await client.post(cancel_url)
    again = await client.post(cancel_url)

    assert foreign.status_code == 404
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancelled_at"] is not None
    assert data["payment"]["status"] == "failed"
    assert again.status_code == 409

    async with session_factory() as session:
        stock = await inventory_ops.get_stock(
            session, ItemRef(ItemType.TICKET, ticket_id)
        )
    assert (stock.available, stock.sold) == (5, 0)


# ---------------------------------------------------------------------------
# Payment details
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_payment_masks_reference(client, db_session):
    _, checkout = await _place_order(client, db_session)

    response = await client.patch(
        f"/payments/{checkout['payment_id']}",
        json={"method": "transfer", "reference": "ACCT 0123456789012345"},
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["method"] == "transfer"
    assert data["reference"] == "ACCT ************2345"


# ---------------------------------------------------------------------------
# Reconciliation (admin / service)
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_requires_admin(client, db_session):
    _, checkout = await _place_order(client, db_session)

    response = await client.post(
        f"/payments/{checkout['payment_id']}/confirm", json={"status": "verified"}
    )

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.integration
async def test_verify_awards_points_once(client, db_session, as_admin):
    _, checkout = await _place_order(
        client, db_session, quantity=3, points_earned_per_unit=7
    )
    url = f"/payments/{checkout['payment_id']}/confirm"

    with as_admin():
        first = await client.post(url, json={"status": "verified"})
        replay = await client.post(url, json={"status": "verified"})

    assert first.status_code == 200, first.text
    assert first.json()["points_awarded"] == 21
    assert first.json()["already_processed"] is False
    assert first.json()["payment"]["status"] == "verified"
    assert replay.status_code == 200
    assert replay.json()["already_processed"] is True

    balance = (await client.get("/loyalty/me")).json()
    assert balance["loyalty_points"] == 21
    order = (await client.get(f"/orders/{checkout['order_id']}")).json()
    assert order["status"] == "paid"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_failed_payment_releases_stock(
    client, db_session, session_factory, as_admin
):
    ticket_id, checkout = await _place_order(
        client, db_session, quantity=2, quantity_available=5
    )

    with as_admin():
        response = await client.post(
            f"/payments/{checkout['payment_id']}/confirm",
            json={"status": "failed", "reason": "card declined"},
        )
        late_verify = await client.post(
            f"/payments/{checkout['payment_id']}/confirm", json={"status": "verified"}
        )

    assert response.status_code == 200, response.text
    assert response.json()["payment"]["failure_reason"] == "card declined"
    assert late_verify.status_code == 409
    assert late_verify.json()["code"] == "INVALID_STATE_TRANSITION"

    async with session_factory() as session:
        stock = await inventory_ops.get_stock(
            session, ItemRef(ItemType.TICKET, ticket_id)
        )
    assert (stock.available, stock.sold) == (5, 0)
    order = (await client.get(f"/orders/{checkout['order_id']}")).json()
    assert order["status"] == "cancelled"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_confirm_unknown_payment_returns_404(client, as_admin):
    with as_admin():
        response = await client.post(
            f"/payments/{uuid.uuid4()}/confirm", json={"status": "verified"}
        )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.integration
async def test_refund_reverses_points(client, db_session, as_admin):
    _, checkout = await _place_order(
        client, db_session, quantity=1, points_earned_per_unit=15
    )
    payment_url = f"/payments/{checkout['payment_id']}"

    with as_admin():
        await client.post(f"{payment_url}/confirm", json={"status": "verified"})
        response = await client.post(f"{payment_url}/refund")

    assert response.status_code == 200, response.text
    assert response.json()["payment"]["status"] == "refunded"
    assert (await client.get("/loyalty/me")).json()["loyalty_points"] == 0
    order = (await client.get(f"/orders/{checkout['order_id']}")).json()
    assert order["status"] == "refunded"
    assert order["refunded_at"] is not None
    assert order["cancelled_at"] is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_fulfill_paid_order(client, db_session, as_admin):
    _, checkout = await _place_order(client, db_session)
    fulfill_url = f"/admin/orders/{checkout['order_id']}/fulfill"

    with as_admin():
        too_early = await client.post(fulfill_url)
        await client.post(
            f"/payments/{checkout['payment_id']}/confirm", json={"status": "verified"}
        )
        response = await client.post(fulfill_url)

    assert too_early.status_code == 409
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "fulfilled"
    assert response.json()["fulfilled_at"] is not None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_lists_payments(client, db_session, as_admin):
    _, first = await _place_order(client, db_session)
    _, second = await _place_order(client, db_session)

    forbidden = await client.get("/admin/payments")
    with as_admin():
        await client.post(
            f"/payments/{first['payment_id']}/confirm", json={"status": "verified"}
        )
        everything = await client.get("/admin/payments")
        pending = await client.get("/admin/payments", params={"status": "pending"})

    assert forbidden.status_code == 403
    assert everything.status_code == 200, everything.text
    assert {p["id"] for p in everything.json()} == {
        first["payment_id"],
        second["payment_id"],
    }
    assert [p["id"] for p in pending.json()] == [second["payment_id"]]
