import logging
import httpx
from typing import Optional, Dict, Any

from pydantic import ValidationError

from shopcart.core.config import settings
from shopcart.core.exceptions import ServiceError
from shopcart.schemas.cart import Stock

logger = logging.getLogger(__name__)


class BackendClient:
    """HTTP client for the stock and product catalog API."""

    def __init__(self, base_url: str = None, client: Optional[httpx.AsyncClient] = None):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT)
        return self.client

    async def _get_json(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            client = await self._get_client()
            response = await client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"GET {url} failed with status {e.response.status_code}: {e.response.text}")
            raise ServiceError(f"GET {path} returned {e.response.status_code}", status_code=e.response.status_code)
        except httpx.HTTPError as e:
            logger.error(f"GET {url} failed: {str(e)}")
            raise ServiceError(f"GET {path} failed: {str(e)}")
        except ValueError as e:
            logger.error(f"GET {url} returned a non-JSON body: {str(e)}")
            raise ServiceError(f"GET {path} returned malformed JSON")

    async def get_stock(self, product_id: int) -> Stock:
        """
        Get available stock for a product.

        GET /stock/{product_id}

        Returns: {"id": 1, "amount": 3}
        """
        data = await self._get_json(f"/stock/{product_id}")
        try:
            stock = Stock.model_validate(data)
        except ValidationError as e:
            logger.error(f"Malformed stock response for product {product_id}: {data!r}")
            raise ServiceError(f"Malformed stock response for product {product_id}: {e.error_count()} errors")
        logger.debug(f"Stock for product {product_id}: {stock.amount}")
        return stock

    async def get_product(self, product_id: int) -> Dict[str, Any]:
        """
        Get catalog metadata for a product.

        GET /products/{product_id}

        Returns: {"id": 1, "title": "...", "price": 179.9, "image": "..."}
        """
        data = await self._get_json(f"/products/{product_id}")
        if not isinstance(data, dict) or data.get("id") != product_id:
            logger.error(f"Malformed product response for product {product_id}: {data!r}")
            raise ServiceError(f"Malformed product response for product {product_id}")
        return data

    async def close(self):
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None
