"""Cart router: cart lines and checkout."""

import uuid
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.rate_limit import checkout_limit
from libs.common.service_client import send_order_confirmation
from libs.db.session import get_async_db
from services.marketplace_service.models import Cart, CartItem, ItemRef
from services.marketplace_service.schemas import (
    CartItemCreate,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
)
from services.marketplace_service.services import cart_ops
from services.marketplace_service.services.checkout import checkout
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/cart", tags=["cart"])


def _cart_response(
    user_id: str, cart: Optional[Cart], items: list[CartItem]
) -> CartResponse:
    return CartResponse(
        id=cart.id if cart else None,
        user_id=user_id,
        items=[CartItemResponse.model_validate(item) for item in items],
        item_count=sum(item.quantity for item in items),
        subtotal=cart_ops.subtotal(items),
    )


async def _current_cart(db: AsyncSession, user_id: str) -> CartResponse:
    cart = await cart_ops.get_cart(db, user_id)
    items = await cart_ops.list_active_items(db, cart.id) if cart else []
    return _cart_response(user_id, cart, items)


# ============================================================================
# CART
# ============================================================================


@router.get("", response_model=CartResponse)
async def get_my_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Current cart with its active lines and subtotal."""
    return await _current_cart(db, current_user.user_id)


@router.post(
    "/items", response_model=CartItemResponse, status_code=status.HTTP_201_CREATED
)
async def add_cart_item(
    payload: CartItemCreate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Add a ticket or product; merges with an existing line for the same item."""
    line = await cart_ops.add_item(
        db,
        user_id=current_user.user_id,
        ref=ItemRef(payload.item_type, payload.item_id),
        quantity=payload.quantity,
    )
    return line


@router.patch("/items/{cart_item_id}", response_model=CartItemResponse)
async def update_cart_item(
    cart_item_id: uuid.UUID,
    payload: CartItemUpdate,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    return await cart_ops.update_quantity(
        db,
        user_id=current_user.user_id,
        cart_item_id=cart_item_id,
        quantity=payload.quantity,
    )


@router.delete("/items/{cart_item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_cart_item(
    cart_item_id: uuid.UUID,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await cart_ops.remove_item(
        db, user_id=current_user.user_id, cart_item_id=cart_item_id
    )


@router.delete("", response_model=CartResponse)
async def clear_my_cart(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    await cart_ops.clear_cart(db, user_id=current_user.user_id)
    return await _current_cart(db, current_user.user_id)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post(
    "/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED
)
@checkout_limit
async def checkout_cart(
    request: Request,
    payload: CheckoutRequest,
    background_tasks: BackgroundTasks,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Reserve stock for every line and create a pending order + payment.

    All-or-nothing: a 409 lists every line that could not be reserved and
    leaves stock untouched.
    """
    result = await checkout(
        db,
        user_id=current_user.user_id,
        payment_method=payload.payment_method,
        payment_reference=payload.payment_reference,
    )

    # Committed already; notification failures never affect the order
    background_tasks.add_task(
        send_order_confirmation,
        user_id=current_user.user_id,
        order_id=str(result.order_id),
        total_amount=str(result.total_amount),
        calling_service=get_settings().SERVICE_NAME,
    )
    return CheckoutResponse(
        order_id=result.order_id,
        payment_id=result.payment_id,
        order_number=result.order_number,
        total_amount=result.total_amount,
    )
