import json
import logging
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from shopcart.core.config import settings
from shopcart.core.exceptions import StorageError
from shopcart.db.models import StorageEntry
from shopcart.schemas.cart import CartItem

logger = logging.getLogger(__name__)


def dump_cart(cart: Sequence[CartItem]) -> str:
    return json.dumps([item.to_stored() for item in cart])


def parse_cart(raw: str) -> List[CartItem]:
    """Parse a stored cart, rejecting anything that breaks the cart invariants."""
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise TypeError(f"Stored cart must be a list, got {type(data).__name__}")
        items = [CartItem.from_stored(entry) for entry in data]
    except (ValueError, TypeError, KeyError, RecursionError, ValidationError) as e:
        raise StorageError(f"Stored cart is malformed: {str(e)}")

    seen = set()
    for item in items:
        if item.product_id in seen:
            raise StorageError(f"Stored cart has duplicate product {item.product_id}")
        seen.add(item.product_id)
    return items


class CartStore:
    """Key-value persistence for a single cart, stored as JSON under a fixed key."""

    def __init__(self, key: str = None):
        self.key = key or settings.CART_STORAGE_KEY

    async def _read(self) -> Optional[str]:
        raise NotImplementedError

    async def _write(self, raw: str):
        raise NotImplementedError

    async def load(self) -> Optional[List[CartItem]]:
        """Return the saved cart, or None when nothing is stored. Raises StorageError."""
        raw = await self._read()
        if raw is None:
            return None
        return parse_cart(raw)

    async def save(self, cart: Sequence[CartItem]):
        await self._write(dump_cart(cart))


class MemoryCartStore(CartStore):
    """Process-local store, used for ephemeral carts and tests."""

    def __init__(self, key: str = None, entries: Dict[str, str] = None):
        super().__init__(key)
        self.entries = entries if entries is not None else {}

    async def _read(self) -> Optional[str]:
        return self.entries.get(self.key)

    async def _write(self, raw: str):
        self.entries[self.key] = raw


class SqlCartStore(CartStore):
    """Cart persisted in the storage_entries table."""

    def __init__(self, session_factory: sessionmaker, key: str = None):
        super().__init__(key)
        self.session_factory = session_factory

    async def _read(self) -> Optional[str]:
        try:
            async with self.session_factory() as session:
                entry = await session.get(StorageEntry, self.key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to read cart '{self.key}': {str(e)}")
            raise StorageError(f"Failed to read cart: {str(e)}")

    async def _write(self, raw: str):
        try:
            async with self.session_factory() as session:
                entry = await session.get(StorageEntry, self.key)
                if entry:
                    entry.value = raw
                else:
                    session.add(StorageEntry(key=self.key, value=raw))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to save cart '{self.key}': {str(e)}")
            raise StorageError(f"Failed to save cart: {str(e)}")
        logger.debug(f"Saved cart '{self.key}' ({len(raw)} bytes)")
