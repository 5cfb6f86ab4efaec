"""Unit tests for loyalty_ops core business logic.

Tests call loyalty_ops functions directly with the db_session fixture.
Each credit/debit runs inside ``atomic`` the way the use cases call it.
"""

import pytest
from libs.common.errors import InvalidPoints
from libs.db.session import atomic
from services.marketplace_service.models import (
    LoyaltyDirection,
    LoyaltyTransactionType,
)
from services.marketplace_service.services import loyalty_ops
from tests.conftest import grant_points

USER = "loyal-user"


async def _credit(db, points, key, user_id=USER):
    async with atomic(db):
        return await loyalty_ops.credit(
            db,
            user_id=user_id,
            points=points,
            idempotency_key=key,
            transaction_type=LoyaltyTransactionType.ACCRUAL,
            description="Test credit",
        )


async def _debit(db, points, key, user_id=USER):
    async with atomic(db):
        return await loyalty_ops.debit(
            db,
            user_id=user_id,
            points=points,
            idempotency_key=key,
            transaction_type=LoyaltyTransactionType.REDEMPTION,
            description="Test debit",
        )


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_balance_is_zero_for_unknown_user(db_session):
    assert await loyalty_ops.get_balance(db_session, "nobody") == 0
    assert await loyalty_ops.get_account(db_session, "nobody") is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_get_or_create_account_is_idempotent(db_session):
    first = await loyalty_ops.get_or_create_account(db_session, USER)
    await db_session.commit()
    second = await loyalty_ops.get_or_create_account(db_session, USER)

    assert first.id == second.id
    assert second.loyalty_points == 0


# ---------------------------------------------------------------------------
# credit
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_credit_records_balance_snapshots(db_session):
    await _credit(db_session, 40, "k-1")
    txn = await _credit(db_session, 60, "k-2")

    assert txn.direction == LoyaltyDirection.CREDIT
    assert txn.balance_before == 40
    assert txn.balance_after == 100
    account = await loyalty_ops.get_account(db_session, USER)
    assert account.loyalty_points == 100
    assert account.lifetime_points_earned == 100


@pytest.mark.asyncio
@pytest.mark.unit
async def test_credit_replay_returns_original_transaction(db_session):
    first = await _credit(db_session, 25, "order-x-accrual")
    replay = await _credit(db_session, 25, "order-x-accrual")

    assert replay.id == first.id
    assert await loyalty_ops.get_balance(db_session, USER) == 25
    _, total = await loyalty_ops.list_transactions(db_session, USER)
    assert total == 1


@pytest.mark.asyncio
@pytest.mark.unit
@pytest.mark.parametrize("points", [0, -5])
async def test_credit_rejects_non_positive_points(db_session, points):
    with pytest.raises(InvalidPoints):
        await _credit(db_session, points, "bad")


# ---------------------------------------------------------------------------
# debit
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_reduces_balance(db_session):
    await grant_points(db_session, USER, 100)

    txn = await _debit(db_session, 30, "d-1")

    assert txn.direction == LoyaltyDirection.DEBIT
    assert txn.amount == 30
    assert txn.requested_amount == 30
    account = await loyalty_ops.get_account(db_session, USER)
    assert account.loyalty_points == 70
    assert account.lifetime_points_spent == 30


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_is_clamped_at_zero(db_session):
    await grant_points(db_session, USER, 30)

    txn = await _debit(db_session, 50, "d-clamp")

    assert txn.requested_amount == 50
    assert txn.amount == 30
    assert txn.balance_after == 0
    assert await loyalty_ops.get_balance(db_session, USER) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_replay_moves_no_points(db_session):
    await grant_points(db_session, USER, 50)

    first = await _debit(db_session, 20, "d-replay")
    replay = await _debit(db_session, 20, "d-replay")

    assert replay.id == first.id
    assert await loyalty_ops.get_balance(db_session, USER) == 30


@pytest.mark.asyncio
@pytest.mark.unit
async def test_debit_rejects_non_positive_points(db_session):
    with pytest.raises(InvalidPoints):
        await _debit(db_session, 0, "bad")


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_transactions_paginates(db_session):
    for i in range(5):
        await _credit(db_session, 10, f"page-{i}")

    page, total = await loyalty_ops.list_transactions(
        db_session, USER, skip=1, limit=2
    )

    assert total == 5
    assert len(page) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_balance_equals_sum_of_ledger(db_session):
    await _credit(db_session, 80, "sum-1")
    await _debit(db_session, 30, "sum-2")
    await _credit(db_session, 5, "sum-3")
    await _debit(db_session, 100, "sum-4")

    transactions, _ = await loyalty_ops.list_transactions(db_session, USER)
    ledger = sum(
        txn.amount if txn.direction == LoyaltyDirection.CREDIT else -txn.amount
        for txn in transactions
    )
    assert ledger == await loyalty_ops.get_balance(db_session, USER) == 0
