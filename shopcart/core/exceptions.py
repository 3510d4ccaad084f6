import enum


class CartErrorKind(str, enum.Enum):
    INSUFFICIENT_STOCK = "InsufficientStock"
    PRODUCT_NOT_FOUND = "ProductNotFound"
    OPERATION_FAILED = "OperationFailed"


class CartOperation(str, enum.Enum):
    ADD = "add"
    REMOVE = "remove"
    UPDATE = "update"


class ServiceError(Exception):
    """Raised by the stock/catalog client when a request cannot be served."""

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(Exception):
    """Raised by a cart store when the cart cannot be written."""


class CartError(Exception):
    """Base class for the errors a cart operation reports to its caller."""

    kind: CartErrorKind

    def __init__(self, operation: CartOperation, product_id: int, message: str = None):
        self.operation = operation
        self.product_id = product_id
        super().__init__(message or f"{self.kind.value} on {operation.value} for product {product_id}")


class InsufficientStockError(CartError):
    kind = CartErrorKind.INSUFFICIENT_STOCK

    def __init__(self, operation: CartOperation, product_id: int, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            operation,
            product_id,
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}"
        )


class ProductNotFoundError(CartError):
    kind = CartErrorKind.PRODUCT_NOT_FOUND


class OperationFailedError(CartError):
    kind = CartErrorKind.OPERATION_FAILED


class CartClosedError(RuntimeError):
    """Raised when a cart manager is used before init() or after dispose()."""
