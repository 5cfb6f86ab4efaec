"""Enums for the Marketplace Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class ItemType(str, enum.Enum):
    TICKET = "ticket"
    PRODUCT = "product"


class InventoryMovementType(str, enum.Enum):
    RESERVATION = "reservation"
    RELEASE = "release"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentOutcome(str, enum.Enum):
    """Result reported by the payment collaborator."""

    VERIFIED = "verified"
    FAILED = "failed"


class CheckoutState(str, enum.Enum):
    STARTED = "started"
    RESERVING = "reserving"
    ASSEMBLED = "assembled"
    FAILED = "failed"


class LoyaltyTransactionType(str, enum.Enum):
    ACCRUAL = "accrual"
    REDEMPTION = "redemption"
    REDEMPTION_REVERSAL = "redemption_reversal"
    REFUND_REVERSAL = "refund_reversal"
    ADJUSTMENT = "adjustment"


class LoyaltyDirection(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class RewardType(str, enum.Enum):
    DISCOUNT = "discount"
    PRODUCT = "product"
    TICKET = "ticket"


class RedemptionStatus(str, enum.Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
