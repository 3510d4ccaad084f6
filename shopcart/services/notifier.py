import logging

from shopcart.core.exceptions import CartError, CartErrorKind, CartOperation

logger = logging.getLogger(__name__)


OUT_OF_STOCK_MESSAGE = "Requested quantity is out of stock"

FAILURE_MESSAGES = {
    CartOperation.ADD: "Error adding product",
    CartOperation.REMOVE: "Error removing product",
    CartOperation.UPDATE: "Error changing product quantity",
}


def message_for(error: CartError) -> str:
    """User-facing message for a cart error: stock shortage, or the failed operation."""
    if error.kind == CartErrorKind.INSUFFICIENT_STOCK:
        return OUT_OF_STOCK_MESSAGE
    return FAILURE_MESSAGES[error.operation]


class Notifier:
    """Default notifier: writes cart errors to the log. UIs subclass it to show toasts."""

    def notify(self, error: CartError):
        logger.warning(f"{message_for(error)} ({error.kind.value}: {str(error)})")
