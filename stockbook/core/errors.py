"""Domain errors raised by the bookkeeping services.

Each error carries the HTTP status and envelope code it is rendered with by
``stockbook.core.observability.bookkeeping_exception_handler``. Services raise
them before committing, so a failed operation leaves stored state unchanged.
"""

from typing import Any


class BookkeepingError(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, *, details: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(BookkeepingError):
    status_code = 404
    code = "not_found"


class InsufficientStockError(BookkeepingError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, *, product_id: str, product_name: str, requested: int, available: int):
        super().__init__(
            f"Not enough stock for {product_name}. Available: {available}",
            details=[
                {
                    "field": "quantity",
                    "message": f"requested {requested}, available {available}",
                    "type": "insufficient_stock",
                }
            ],
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class NegativeStockError(BookkeepingError):
    status_code = 409
    code = "negative_stock"

    def __init__(self, *, product_id: str, product_name: str, requested: int, available: int):
        super().__init__(
            f"Deleting this purchase would drive stock for {product_name} below zero "
            f"(on hand: {available}, purchase quantity: {requested})",
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class AuthenticationError(BookkeepingError):
    status_code = 401
    code = "unauthorized"


class ConflictError(BookkeepingError):
    status_code = 409
    code = "conflict"


class BackendError(BookkeepingError):
    status_code = 503
    code = "backend_error"


class AIGatewayError(Exception):
    """Text-generation call failed; callers degrade to the fallback suggestion."""
