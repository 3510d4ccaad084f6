from fastapi import APIRouter, Depends, HTTPException, status
import logging

from shopcart.api.dependencies import get_cart_manager
from shopcart.core.exceptions import CartError, CartErrorKind
from shopcart.schemas.cart import CartItemAdd, CartItemUpdate, CartItemResponse, CartResponse
from shopcart.services.cart import CartManager
from shopcart.services.notifier import message_for

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cart", tags=["cart"])


ERROR_STATUS = {
    CartErrorKind.INSUFFICIENT_STOCK: status.HTTP_400_BAD_REQUEST,
    CartErrorKind.PRODUCT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    CartErrorKind.OPERATION_FAILED: status.HTTP_502_BAD_GATEWAY,
}


def build_cart_response(manager: CartManager) -> CartResponse:
    items = [
        CartItemResponse(product_id=item.product_id, amount=item.amount, metadata=item.metadata)
        for item in manager.cart
    ]
    return CartResponse(items=items, item_count=len(items))


def to_http_error(error: CartError) -> HTTPException:
    return HTTPException(
        status_code=ERROR_STATUS[error.kind],
        detail={"kind": error.kind.value, "message": message_for(error)}
    )


@router.get("", response_model=CartResponse)
async def get_cart(manager: CartManager = Depends(get_cart_manager)):
    """Get current shopping cart."""
    return build_cart_response(manager)


@router.post("/add", response_model=CartResponse)
async def add_to_cart(item: CartItemAdd, manager: CartManager = Depends(get_cart_manager)):
    """Add one unit of a product to the cart."""
    try:
        await manager.add_product(item.product_id)
    except CartError as e:
        raise to_http_error(e)
    return build_cart_response(manager)


@router.put("/update", response_model=CartResponse)
async def update_cart_item(item: CartItemUpdate, manager: CartManager = Depends(get_cart_manager)):
    """Set the amount of a product already in the cart. Amounts <= 0 are ignored."""
    try:
        await manager.update_product_amount(item.product_id, item.amount)
    except CartError as e:
        raise to_http_error(e)
    return build_cart_response(manager)


@router.delete("/remove/{product_id}", response_model=CartResponse)
async def remove_from_cart(product_id: int, manager: CartManager = Depends(get_cart_manager)):
    """Remove item from cart."""
    try:
        await manager.remove_product(product_id)
    except CartError as e:
        raise to_http_error(e)
    return build_cart_response(manager)
