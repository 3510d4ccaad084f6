import asyncio
import inspect
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, Callable, Dict, Optional, Tuple

from shopcart.core.exceptions import (
    CartClosedError,
    CartError,
    CartOperation,
    InsufficientStockError,
    OperationFailedError,
    ProductNotFoundError,
    ServiceError,
)
from shopcart.schemas.cart import CartItem, Stock
from shopcart.services.notifier import Notifier
from shopcart.services.storage import CartStore

logger = logging.getLogger(__name__)

Cart = Tuple[CartItem, ...]
Subscriber = Callable[[Cart], Any]


def find_item(cart: Cart, product_id: int) -> Optional[CartItem]:
    return next((item for item in cart if item.product_id == product_id), None)


def put_item(cart: Cart, item: CartItem) -> Cart:
    """Replace the entry for item.product_id in place, or append it at the end."""
    if find_item(cart, item.product_id) is None:
        return cart + (item,)
    return tuple(item if existing.product_id == item.product_id else existing for existing in cart)


def drop_item(cart: Cart, product_id: int) -> Cart:
    return tuple(item for item in cart if item.product_id != product_id)


class CartManager:
    """
    Owns the shopping cart: validates changes against stock, persists every
    commit and notifies subscribers.

    stock_service must provide ``async get_stock(product_id)`` returning an
    object or mapping with ``amount``; catalog_service must provide
    ``async get_product(product_id)`` returning a flat product mapping with
    ``id``. ``BackendClient`` implements both.

    Operations on the same product are serialized by a per-product lock held
    for the whole read-validate-commit sequence. Commits run under a single
    lock and always rebuild from the latest cart. The next cart is saved
    before it becomes visible in memory, so a failed save leaves the cart as
    it was.
    """

    def __init__(self, stock_service, catalog_service, store: CartStore, notifier: Notifier = None):
        self.stock_service = stock_service
        self.catalog_service = catalog_service
        self.store = store
        self.notifier = notifier or Notifier()
        self._cart: Cart = ()
        self._subscribers = []
        self._product_locks: Dict[int, asyncio.Lock] = {}
        self._lock_users: Dict[int, int] = {}
        self._commit_lock = asyncio.Lock()
        self._initialized = False
        self._disposed = False

    async def init(self) -> "CartManager":
        """Load the saved cart. Missing or unreadable storage yields an empty cart."""
        try:
            stored = await self.store.load()
        except Exception as e:
            logger.warning(f"Discarding stored cart '{self.store.key}': {str(e)}")
            stored = None
        self._cart = tuple(stored or ())
        self._initialized = True
        logger.info(f"Cart '{self.store.key}' loaded with {len(self._cart)} products")
        return self

    async def dispose(self):
        """Wait for an in-flight commit, then drop subscribers and refuse further changes."""
        async with self._commit_lock:
            self._disposed = True
        self._subscribers.clear()
        logger.info(f"Cart '{self.store.key}' disposed")

    # Read side

    def snapshot(self) -> Cart:
        return tuple(item.model_copy(deep=True) for item in self._cart)

    @property
    def cart(self) -> Cart:
        return self.snapshot()

    @property
    def item_count(self) -> int:
        return len(self._cart)

    @property
    def amounts(self) -> Dict[int, int]:
        return {item.product_id: item.amount for item in self._cart}

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback(snapshot)`` with a private copy after every commit. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # Operations

    async def add_product(self, product_id: int):
        self._ensure_active()
        async with self._product_lock(product_id):
            with self._reporting(CartOperation.ADD, product_id):
                existing = find_item(self._cart, product_id)
                stock = await self._get_stock(product_id)

                desired = (existing.amount if existing else 0) + 1
                if desired > stock.amount:
                    raise InsufficientStockError(CartOperation.ADD, product_id, desired, stock.amount)

                if existing:
                    item = existing.with_amount(desired)
                else:
                    product = await self.catalog_service.get_product(product_id)
                    if not isinstance(product, dict) or product.get("id") != product_id:
                        raise ServiceError(f"Catalog returned a different product for {product_id}")
                    item = CartItem.from_product(product)

                await self._commit(lambda cart: put_item(cart, item))
                logger.info(f"Added product {product_id} to cart, amount={item.amount}")

    async def remove_product(self, product_id: int):
        self._ensure_active()
        async with self._product_lock(product_id):
            with self._reporting(CartOperation.REMOVE, product_id):
                if find_item(self._cart, product_id) is None:
                    raise ProductNotFoundError(
                        CartOperation.REMOVE, product_id, f"Product {product_id} is not in the cart"
                    )
                await self._commit(lambda cart: drop_item(cart, product_id))
                logger.info(f"Removed product {product_id} from cart")

    async def update_product_amount(self, product_id: int, amount: int):
        self._ensure_active()
        if amount <= 0:
            # removal goes through remove_product
            logger.debug(f"Ignoring amount {amount} for product {product_id}")
            return

        async with self._product_lock(product_id):
            with self._reporting(CartOperation.UPDATE, product_id):
                stock = await self._get_stock(product_id)
                if amount > stock.amount:
                    raise InsufficientStockError(CartOperation.UPDATE, product_id, amount, stock.amount)

                existing = find_item(self._cart, product_id)
                if existing is None:
                    raise ProductNotFoundError(
                        CartOperation.UPDATE, product_id, f"Product {product_id} is not in the cart"
                    )

                item = existing.with_amount(amount)
                await self._commit(lambda cart: put_item(cart, item))
                logger.info(f"Updated product {product_id} amount to {amount}")

    # Internals

    def _ensure_active(self):
        if not self._initialized:
            raise CartClosedError("CartManager.init() must be awaited before changing the cart")
        if self._disposed:
            raise CartClosedError("CartManager has been disposed")

    @asynccontextmanager
    async def _product_lock(self, product_id: int):
        """Hold the lock for product_id; the lock is dropped once nobody holds or waits on it."""
        lock = self._product_locks.get(product_id)
        if lock is None:
            lock = self._product_locks[product_id] = asyncio.Lock()
        self._lock_users[product_id] = self._lock_users.get(product_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[product_id] -= 1
            if self._lock_users[product_id] == 0:
                del self._lock_users[product_id]
                del self._product_locks[product_id]

    async def _get_stock(self, product_id: int) -> Stock:
        stock = await self.stock_service.get_stock(product_id)
        return Stock.model_validate(stock, from_attributes=True)

    async def _commit(self, build: Callable[[Cart], Cart]):
        async with self._commit_lock:
            if self._disposed:
                raise CartClosedError("CartManager has been disposed")
            next_cart = build(self._cart)
            await self.store.save(next_cart)
            self._cart = next_cart
            snapshot = self.snapshot()
        await self._publish(snapshot)

    async def _publish(self, snapshot: Cart):
        for callback in list(self._subscribers):
            try:
                result = callback(tuple(item.model_copy(deep=True) for item in snapshot))
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Cart subscriber {callback!r} failed")

    @contextmanager
    def _reporting(self, operation: CartOperation, product_id: int):
        """Report every failure to the notifier as exactly one CartError, then re-raise it."""
        try:
            yield
        except CartError as error:
            self.notifier.notify(error)
            raise
        except CartClosedError:
            raise
        except Exception as e:
            logger.error(f"Cart {operation.value} failed for product {product_id}: {str(e)}")
            error = OperationFailedError(operation, product_id, f"{operation.value} failed: {str(e)}")
            self.notifier.notify(error)
            raise error from e
