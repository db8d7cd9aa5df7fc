"""
Domain exceptions for inventory and ordering business logic

These exceptions represent business rule violations. They are raised by the business
layer and caught at the presentation boundary, which logs and displays them.
"""


class StockroomDomainError(Exception):
    """Base exception for all stockroom domain errors"""
    pass


class NotAuthenticated(StockroomDomainError):
    """Raised when a write is attempted without an acting identity"""

    def __init__(self, message="User not authenticated"):
        super().__init__(message)


class NotFound(StockroomDomainError):
    """Raised when a record does not exist or is not owned by the acting identity"""

    def __init__(self, entity, record_id):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} {record_id} not found")


class ValidationError(StockroomDomainError):
    """Raised when submitted field values break a data model invariant"""
    pass


class InvalidStateTransition(StockroomDomainError):
    """Raised when a status change or workflow step is not allowed from the current state"""
    pass


class InsufficientStock(StockroomDomainError):
    """Raised when a 'use' adjustment would take stock below zero"""

    def __init__(self, product_id, available, requested):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Cannot reduce stock below zero: product {product_id} has {available}, requested {requested}"
        )


class ConflictRetryExhausted(StockroomDomainError):
    """Raised when a compare-and-set stock write keeps losing to concurrent writers"""

    def __init__(self, product_id, attempts):
        self.product_id = product_id
        self.attempts = attempts
        super().__init__(
            f"Stock for product {product_id} changed concurrently; gave up after {attempts} attempts"
        )


class PartialFulfillment(StockroomDomainError):
    """
    Raised when an order was marked completed but not every line was credited.

    The credited/uncredited lists let a retry resume without double-crediting.
    """

    def __init__(self, order_id, credited_item_ids, uncredited_item_ids,
                 credited_product_ids, uncredited_product_ids):
        self.order_id = order_id
        self.credited_item_ids = list(credited_item_ids)
        self.uncredited_item_ids = list(uncredited_item_ids)
        self.credited_product_ids = list(credited_product_ids)
        self.uncredited_product_ids = list(uncredited_product_ids)
        super().__init__(
            f"Order {order_id} completed but products {self.uncredited_product_ids} were not credited"
        )


class ImmutableLedgerError(StockroomDomainError):
    """Raised when code tries to modify or delete a stock transaction"""
    pass
