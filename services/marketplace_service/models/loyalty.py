"""Loyalty models: point accounts, the point ledger, rewards and redemptions."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import has_passed, utc_now
from libs.db.base import Base
from services.marketplace_service.models.enums import (
    LoyaltyDirection,
    LoyaltyTransactionType,
    RedemptionStatus,
    RewardType,
    enum_values,
)
from sqlalchemy import Boolean, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String, Text, Uuid, false, true
from sqlalchemy.orm import Mapped, mapped_column, relationship


class LoyaltyAccount(Base):
    """Point balance for one user. Created lazily with zero points."""

    __tablename__ = "marketplace_loyalty_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    loyalty_points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lifetime_points_earned: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    lifetime_points_spent: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("loyalty_points >= 0", name="loyalty_points_nonneg"),
    )

    def __repr__(self):
        return f"<LoyaltyAccount {self.user_id} points={self.loyalty_points}>"


class LoyaltyTransaction(Base):
    """Immutable ledger of point movements. Source of truth for the balance."""

    __tablename__ = "marketplace_loyalty_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("marketplace_loyalty_accounts.id"),
        nullable=False,
        index=True,
    )
    idempotency_key: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    transaction_type: Mapped[LoyaltyTransactionType] = mapped_column(
        SAEnum(
            LoyaltyTransactionType,
            name="marketplace_loyalty_transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    direction: Mapped[LoyaltyDirection] = mapped_column(
        SAEnum(
            LoyaltyDirection,
            name="marketplace_loyalty_direction_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    # Points actually moved; a clamped debit records less than requested
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    requested_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_before: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="loyalty_amount_nonneg"),
        CheckConstraint("requested_amount > 0", name="loyalty_requested_positive"),
        CheckConstraint("balance_after >= 0", name="loyalty_balance_after_nonneg"),
    )

    def __repr__(self):
        return (
            f"<LoyaltyTransaction {self.transaction_type} {self.direction}"
            f" {self.amount}>"
        )


# ============================================================================
# REWARDS
# ============================================================================


class Reward(Base):
    """A catalog entry users can redeem points for."""

    __tablename__ = "marketplace_rewards"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    points_required: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_type: Mapped[RewardType] = mapped_column(
        SAEnum(
            RewardType,
            name="marketplace_reward_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RewardType.DISCOUNT,
        nullable=False,
    )
    discount_percent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("marketplace_products.id"), nullable=True
    )
    ticket_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("marketplace_tickets.id"), nullable=True
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

    __table_args__ = (
        CheckConstraint("points_required >= 0", name="reward_points_nonneg"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name="reward_discount_range",
        ),
        CheckConstraint(
            "product_id IS NULL OR ticket_id IS NULL",
            name="reward_single_link",
        ),
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return has_passed(self.expires_at, now)

    def __repr__(self):
        return f"<Reward {self.name} cost={self.points_required}>"


class Redemption(Base):
    """A user's claim on a reward. ``points_spent`` is fixed at redeem time."""

    __tablename__ = "marketplace_redemptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    reward_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("marketplace_rewards.id"), nullable=False, index=True
    )
    points_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[RedemptionStatus] = mapped_column(
        SAEnum(
            RedemptionStatus,
            name="marketplace_redemption_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=RedemptionStatus.PENDING,
        nullable=False,
    )
    redeemed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("points_spent >= 0", name="redemption_points_nonneg"),
    )

    reward: Mapped[Reward] = relationship(lazy="joined", innerjoin=True)

    @property
    def reward_name(self) -> Optional[str]:
        return self.reward.name if self.reward else None

    def __repr__(self):
        return f"<Redemption {self.id} status={self.status}>"
