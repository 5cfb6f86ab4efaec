"""Loyalty ledger: credit/debit of user points with idempotency and row locking.

Every movement writes a LoyaltyTransaction with balance snapshots. These
functions flush but never commit; the use case calling them owns the
transaction (payment reconciliation, redemption, reversal).
"""

from typing import Optional

from libs.common.errors import InvalidPoints
from libs.common.logging import get_logger
from services.marketplace_service.models import (
    LoyaltyAccount,
    LoyaltyDirection,
    LoyaltyTransaction,
    LoyaltyTransactionType,
)
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


async def get_account(
    db: AsyncSession, user_id: str, *, lock: bool = False
) -> Optional[LoyaltyAccount]:
    query = select(LoyaltyAccount).where(LoyaltyAccount.user_id == user_id)
    if lock:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def get_or_create_account(
    db: AsyncSession, user_id: str, *, lock: bool = False
) -> LoyaltyAccount:
    """Return the user's account, creating it with a zero balance on first use."""
    account = await get_account(db, user_id, lock=lock)
    if account:
        return account

    try:
        async with db.begin_nested():
            account = LoyaltyAccount(
                user_id=user_id,
                loyalty_points=0,
                lifetime_points_earned=0,
                lifetime_points_spent=0,
            )
            db.add(account)
    except IntegrityError:
        account = await get_account(db, user_id, lock=lock)
        if account is None:
            raise
    else:
        logger.info("Created loyalty account for user %s", user_id)
    return account


async def get_balance(db: AsyncSession, user_id: str) -> int:
    account = await get_account(db, user_id)
    return account.loyalty_points if account else 0


async def find_transaction(
    db: AsyncSession, idempotency_key: str
) -> Optional[LoyaltyTransaction]:
    result = await db.execute(
        select(LoyaltyTransaction).where(
            LoyaltyTransaction.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Credit
# ---------------------------------------------------------------------------


async def credit(
    db: AsyncSession,
    *,
    user_id: str,
    points: int,
    idempotency_key: str,
    transaction_type: LoyaltyTransactionType,
    description: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> LoyaltyTransaction:
    """Add points to a user's balance.

    1. Validate points > 0
    2. SELECT FOR UPDATE on the account row (created if missing)
    3. Replay: return the existing transaction if the key was used
    4. Write the ledger row with balance snapshots and update the balance
    """
    if points <= 0:
        raise InvalidPoints(points)

    account = await get_or_create_account(db, user_id, lock=True)

    existing = await find_transaction(db, idempotency_key)
    if existing:
        logger.info(
            "Idempotent replay for key=%s → txn=%s", idempotency_key, existing.id
        )
        return existing

    balance_before = account.loyalty_points
    balance_after = balance_before + points

    txn = LoyaltyTransaction(
        account_id=account.id,
        idempotency_key=idempotency_key,
        transaction_type=transaction_type,
        direction=LoyaltyDirection.CREDIT,
        amount=points,
        requested_amount=points,
        balance_before=balance_before,
        balance_after=balance_after,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.add(txn)

    account.loyalty_points = balance_after
    account.lifetime_points_earned += points
    await db.flush()

    logger.info(
        "Credit %d points to user %s (key=%s), balance %d→%d",
        points,
        user_id,
        idempotency_key,
        balance_before,
        balance_after,
    )
    return txn


# ---------------------------------------------------------------------------
# Debit (clamped at zero)
# ---------------------------------------------------------------------------


async def debit(
    db: AsyncSession,
    *,
    user_id: str,
    points: int,
    idempotency_key: str,
    transaction_type: LoyaltyTransactionType,
    description: str,
    reference_type: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> LoyaltyTransaction:
    """Remove points from a user's balance, never going below zero.

    When the balance is smaller than ``points`` the balance becomes 0 and the
    transaction records the amount actually removed next to the requested one.
    """
    if points <= 0:
        raise InvalidPoints(points)

    account = await get_or_create_account(db, user_id, lock=True)

    existing = await find_transaction(db, idempotency_key)
    if existing:
        logger.info(
            "Idempotent replay for key=%s → txn=%s", idempotency_key, existing.id
        )
        return existing

    balance_before = account.loyalty_points
    removed = min(points, balance_before)
    balance_after = balance_before - removed

    txn = LoyaltyTransaction(
        account_id=account.id,
        idempotency_key=idempotency_key,
        transaction_type=transaction_type,
        direction=LoyaltyDirection.DEBIT,
        amount=removed,
        requested_amount=points,
        balance_before=balance_before,
        balance_after=balance_after,
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    db.add(txn)

    account.loyalty_points = balance_after
    account.lifetime_points_spent += removed
    await db.flush()

    if removed < points:
        logger.warning(
            "Debit of %d points from user %s clamped to %d (key=%s)",
            points,
            user_id,
            removed,
            idempotency_key,
        )
    logger.info(
        "Debit %d points from user %s (key=%s), balance %d→%d",
        removed,
        user_id,
        idempotency_key,
        balance_before,
        balance_after,
    )
    return txn


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def list_transactions(
    db: AsyncSession, user_id: str, *, skip: int = 0, limit: int = 50
) -> tuple[list[LoyaltyTransaction], int]:
    account = await get_account(db, user_id)
    if account is None:
        return [], 0

    total = await db.scalar(
        select(func.count())
        .select_from(LoyaltyTransaction)
        .where(LoyaltyTransaction.account_id == account.id)
    )
    result = await db.execute(
        select(LoyaltyTransaction)
        .where(LoyaltyTransaction.account_id == account.id)
        .order_by(LoyaltyTransaction.created_at.desc(), LoyaltyTransaction.id)
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0
