"""Domain error taxonomy shared by the marketplace operations.

Operations raise these; ``libs.common.error_handler`` renders them as JSON
with the status code each class declares.
"""

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for expected business-rule failures."""

    status_code: int = 400
    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, **payload: Any):
        self.message = message
        self.payload = payload
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "code": self.code}
        body.update(self.payload)
        return body


# ---------------------------------------------------------------------------
# Lookup failures
# ---------------------------------------------------------------------------


class NotFoundError(DomainError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", id=str(entity_id))
        self.entity_id = entity_id


class ItemNotFound(NotFoundError):
    code = "ITEM_NOT_FOUND"

    def __init__(self, item_type: str, item_id: Any):
        super().__init__(item_type.capitalize(), item_id)
        self.payload["item_type"] = item_type


class CartItemNotFound(NotFoundError):
    code = "CART_ITEM_NOT_FOUND"

    def __init__(self, cart_item_id: Any):
        super().__init__("Cart item", cart_item_id)


class OrderNotFound(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: Any):
        super().__init__("Order", order_id)


class PaymentNotFound(NotFoundError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: Any):
        super().__init__("Payment", payment_id)


class RewardNotFound(NotFoundError):
    code = "REWARD_NOT_FOUND"

    def __init__(self, reward_id: Any):
        super().__init__("Reward", reward_id)


class RedemptionNotFound(NotFoundError):
    code = "REDEMPTION_NOT_FOUND"

    def __init__(self, redemption_id: Any):
        super().__init__("Redemption", redemption_id)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidQuantity(DomainError):
    status_code = 422
    code = "INVALID_QUANTITY"

    def __init__(self, quantity: int):
        super().__init__(
            f"Quantity must be at least 1 (got {quantity})", quantity=quantity
        )
        self.quantity = quantity


class InvalidPoints(DomainError):
    status_code = 422
    code = "INVALID_POINTS"

    def __init__(self, points: int):
        super().__init__(f"Points must be positive (got {points})", points=points)
        self.points = points


class InvalidReward(DomainError):
    status_code = 422
    code = "INVALID_REWARD"


class EmptyCart(DomainError):
    status_code = 400
    code = "EMPTY_CART"

    def __init__(self) -> None:
        super().__init__("Cart has no items to check out")


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class InsufficientStock(DomainError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, item_type: str, item_id: Any, requested: int, available: int):
        super().__init__(
            f"Only {available} of {item_type} {item_id} available, {requested} requested",
            item_type=item_type,
            item_id=str(item_id),
            requested=requested,
            available=available,
        )
        self.item_type = item_type
        self.item_id = item_id
        self.requested = requested
        self.available = available

    def item_payload(self) -> dict[str, Any]:
        return {
            "item_type": self.item_type,
            "item_id": str(self.item_id),
            "requested": self.requested,
            "available": self.available,
        }


class CheckoutFailed(DomainError):
    """One or more cart lines could not be reserved; nothing was reserved."""

    status_code = 409
    code = "CHECKOUT_FAILED"

    def __init__(self, failed_items: list[InsufficientStock], state: Any = None):
        super().__init__(
            "Checkout failed: insufficient stock",
            error="InsufficientStock",
            items=[failure.item_payload() for failure in failed_items],
        )
        self.failed_items = failed_items
        self.state = state


class InvalidStateTransition(DomainError):
    status_code = 409
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, entity: str, current: Any, target: Any):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"{entity} cannot move from {current_value} to {target_value}",
            entity=entity,
            current=current_value,
            target=target_value,
        )
        self.current = current
        self.target = target


class RewardExpired(DomainError):
    status_code = 409
    code = "REWARD_EXPIRED"

    def __init__(self, reward_id: Any):
        super().__init__(f"Reward {reward_id} has expired", reward_id=str(reward_id))


class RewardInactive(DomainError):
    status_code = 409
    code = "REWARD_INACTIVE"

    def __init__(self, reward_id: Any):
        super().__init__(
            f"Reward {reward_id} is not active", reward_id=str(reward_id)
        )


class InsufficientPoints(DomainError):
    status_code = 409
    code = "INSUFFICIENT_POINTS"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Reward needs {required} points, balance is {available}",
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


class ConcurrentModification(DomainError):
    status_code = 409
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message or "The resource was modified concurrently, retry the request",
            retryable=True,
        )
