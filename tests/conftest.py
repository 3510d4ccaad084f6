import asyncio
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from shopcart.core.exceptions import ServiceError, StorageError
from shopcart.db.session import create_session_factory, init_db
from shopcart.schemas.cart import CartItem, Stock
from shopcart.services.cart import CartManager
from shopcart.services.notifier import Notifier
from shopcart.services.storage import MemoryCartStore


def make_product(product_id: int) -> dict:
    return {
        "id": product_id,
        "title": f"Tênis {product_id}",
        "price": 179.9,
        "image": f"https://cdn.example.com/shoes/{product_id}.jpg",
    }


class FakeBackend:
    """Stock and catalog service double. Unknown ids fail like a 404 would."""

    def __init__(self, stock: dict = None, products: dict = None, delay: float = 0):
        self.stock = dict(stock or {})
        self.products = dict(products or {})
        self.delay = delay
        self.stock_calls = []
        self.product_calls = []

    async def get_stock(self, product_id: int) -> Stock:
        self.stock_calls.append(product_id)
        await asyncio.sleep(self.delay)
        if product_id not in self.stock:
            raise ServiceError(f"GET /stock/{product_id} returned 404", status_code=404)
        return Stock(id=product_id, amount=self.stock[product_id])

    async def get_product(self, product_id: int) -> dict:
        self.product_calls.append(product_id)
        await asyncio.sleep(self.delay)
        if product_id not in self.products:
            raise ServiceError(f"GET /products/{product_id} returned 404", status_code=404)
        return dict(self.products[product_id])


class RecordingNotifier(Notifier):
    def __init__(self):
        self.errors = []

    def notify(self, error):
        super().notify(error)
        self.errors.append(error)

    @property
    def kinds(self):
        return [error.kind for error in self.errors]


class FlakyStore(MemoryCartStore):
    """Memory store whose writes can be switched to fail."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.fail_writes = False
        self.writes = 0

    async def _write(self, raw: str):
        if self.fail_writes:
            raise StorageError("disk full")
        self.writes += 1
        await super()._write(raw)


@pytest.fixture
def backend():
    return FakeBackend(
        stock={10: 5, 11: 2, 12: 1},
        products={10: make_product(10), 11: make_product(11), 12: make_product(12)},
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def make_manager(backend, store, notifier):
    """Build an initialized manager whose store already holds the given items."""

    async def factory(items=()):
        if items:
            await store.save([CartItem.from_product(make_product(pid), amount=amount) for pid, amount in items])
            store.writes = 0
        return await CartManager(backend, backend, store, notifier).init()

    return factory


@pytest.fixture
async def manager(make_manager):
    return await make_manager()


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cart.db'}", echo=False, future=True)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)
