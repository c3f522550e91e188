class OrderStateError(ValueError):
    """Raised when a quote or sales order is not in a state that allows the change"""
