"""Pydantic request/response schemas for the Marketplace Service."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.marketplace_service.models import (
    ItemType,
    LoyaltyDirection,
    LoyaltyTransactionType,
    OrderStatus,
    PaymentOutcome,
    PaymentStatus,
    RedemptionStatus,
    RewardType,
)

# ---------------------------------------------------------------------------
# Cart Schemas
# ---------------------------------------------------------------------------


class CartItemCreate(BaseModel):
    item_type: ItemType
    item_id: uuid.UUID
    # Range is enforced by the cart manager so it can answer with InvalidQuantity
    quantity: int = 1


class CartItemUpdate(BaseModel):
    quantity: int


class CartItemResponse(BaseModel):
    id: uuid.UUID
    item_type: ItemType
    item_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    added_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CartResponse(BaseModel):
    id: Optional[uuid.UUID] = None
    user_id: str
    items: list[CartItemResponse] = []
    item_count: int = 0
    subtotal: Decimal = Decimal("0")


# ---------------------------------------------------------------------------
# Checkout Schemas
# ---------------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)
    payment_reference: Optional[str] = Field(None, max_length=100)


class CheckoutResponse(BaseModel):
    order_id: uuid.UUID
    payment_id: uuid.UUID
    order_number: str
    total_amount: Decimal
    status: OrderStatus = OrderStatus.PENDING


# ---------------------------------------------------------------------------
# Order & Payment Schemas
# ---------------------------------------------------------------------------


class PaymentResponse(BaseModel):
    id: uuid.UUID
    order_id: uuid.UUID
    method: str
    reference: Optional[str] = None
    status: PaymentStatus
    failure_reason: Optional[str] = None
    created_at: datetime
    verified_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OrderLineResponse(BaseModel):
    id: uuid.UUID
    item_type: ItemType
    item_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    user_id: str
    status: OrderStatus
    total_amount: Decimal
    items: list[OrderLineResponse] = []
    payment: Optional[PaymentResponse] = None
    created_at: datetime
    paid_at: Optional[datetime] = None
    fulfilled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentUpdateRequest(BaseModel):
    method: Optional[str] = Field(None, min_length=1, max_length=50)
    reference: Optional[str] = Field(None, max_length=100)


class PaymentConfirmRequest(BaseModel):
    """Outcome reported by the payment collaborator (or an admin)."""

    status: PaymentOutcome
    method: Optional[str] = Field(None, min_length=1, max_length=50)
    reference: Optional[str] = Field(None, max_length=100)
    reason: Optional[str] = None


class PaymentConfirmResponse(BaseModel):
    payment: PaymentResponse
    already_processed: bool = False
    points_awarded: int = 0


# ---------------------------------------------------------------------------
# Loyalty Schemas
# ---------------------------------------------------------------------------


class LoyaltyBalanceResponse(BaseModel):
    user_id: str
    loyalty_points: int = 0
    lifetime_points_earned: int = 0
    lifetime_points_spent: int = 0


class LoyaltyTransactionResponse(BaseModel):
    id: uuid.UUID
    idempotency_key: str
    transaction_type: LoyaltyTransactionType
    direction: LoyaltyDirection
    amount: int
    requested_amount: int
    balance_before: int
    balance_after: int
    description: str
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LoyaltyTransactionListResponse(BaseModel):
    transactions: list[LoyaltyTransactionResponse]
    total: int
    skip: int
    limit: int


# ---------------------------------------------------------------------------
# Reward & Redemption Schemas
# ---------------------------------------------------------------------------


class RewardBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    points_required: int
    reward_type: RewardType = RewardType.DISCOUNT
    discount_percent: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True
    product_id: Optional[uuid.UUID] = None
    ticket_id: Optional[uuid.UUID] = None


class RewardCreate(RewardBase):
    pass


class RewardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    points_required: Optional[int] = None
    reward_type: Optional[RewardType] = None
    discount_percent: Optional[int] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None
    product_id: Optional[uuid.UUID] = None
    ticket_id: Optional[uuid.UUID] = None


class RewardResponse(RewardBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RedemptionResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    reward_id: uuid.UUID
    reward_name: Optional[str] = None
    points_spent: int
    status: RedemptionStatus
    redeemed_at: datetime
    fulfilled_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
