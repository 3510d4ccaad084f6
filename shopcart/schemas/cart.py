from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class Stock(BaseModel):
    id: Optional[int] = None
    amount: int = Field(ge=0, strict=True)


class CartItem(BaseModel):
    product_id: int = Field(gt=0, strict=True)
    amount: int = Field(gt=0, strict=True)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @classmethod
    def from_product(cls, product: Dict[str, Any], amount: int = 1) -> "CartItem":
        """Build a cart entry from a flat catalog product ({"id": ..., "title": ..., ...})."""
        metadata = {key: value for key, value in product.items() if key not in ("id", "amount")}
        return cls(product_id=product["id"], amount=amount, metadata=metadata)

    @classmethod
    def from_stored(cls, data: Dict[str, Any]) -> "CartItem":
        """Parse one entry of the stored cart. Raises KeyError/TypeError/ValidationError on bad data."""
        if not isinstance(data, dict):
            raise TypeError(f"Cart entry must be an object, got {type(data).__name__}")
        fields = dict(data)
        product_id = fields.pop("id")
        amount = fields.pop("amount")
        return cls(product_id=product_id, amount=amount, metadata=fields)

    def to_stored(self) -> Dict[str, Any]:
        return {"id": self.product_id, **self.metadata, "amount": self.amount}

    def with_amount(self, amount: int) -> "CartItem":
        return CartItem(product_id=self.product_id, amount=amount, metadata=self.metadata)


class CartItemAdd(BaseModel):
    product_id: int


class CartItemUpdate(BaseModel):
    product_id: int
    amount: int


class CartItemResponse(BaseModel):
    product_id: int
    amount: int
    metadata: Dict[str, Any]


class CartResponse(BaseModel):
    items: List[CartItemResponse]
    item_count: int
