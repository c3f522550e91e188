"""Errors raised by stock bookkeeping"""


class StockError(ValueError):
    """Base class for stock bookkeeping failures"""


class InvalidQuantityError(StockError):
    pass


class InsufficientStockError(StockError):
    """Raised when a product cannot cover the requested quantity"""

    def __init__(self, product, requested, available, message=None):
        self.product = product
        self.requested = requested
        self.available = available
        if message is None:
            message = f"Insufficient stock for {product.name}. Available: {available}, requested: {requested}"
        super().__init__(message)
