class PurchaseOrderError(ValueError):
    """Raised when a purchase order cannot make the requested change"""
