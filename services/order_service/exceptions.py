class OrderError(Exception):
    """Base class for order store failures."""


class OrderCreationFailed(OrderError):
    pass


class OrderNotFound(OrderError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class InvalidStatusTransition(OrderError):
    """A status update the workflow does not allow (an UpdateRejected outcome)."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move order from '{current}' to '{target}'")
        self.current = current
        self.target = target


class ConfirmationRequired(OrderError):
    pass


class ReconciliationError(OrderError):
    """A line could not be turned into an order item."""

    def __init__(self, product_id: str, reason: str):
        super().__init__(f"Line for product {product_id} rejected: {reason}")
        self.product_id = product_id
        self.reason = reason
