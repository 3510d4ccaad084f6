from fastapi import HTTPException, Request, status

from shopcart.services.cart import CartManager


async def get_cart_manager(request: Request) -> CartManager:
    """Dependency returning the cart manager created at startup."""
    manager = getattr(request.app.state, "cart_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cart is not available yet"
        )
    return manager
