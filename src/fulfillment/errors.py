"""Error kinds raised by the fulfillment core.

``OutOfStock``, ``InvalidTransition`` and ``StaleInventoryRecord`` are
recoverable rule violations and extend Protean's ``ValidationError`` so they
abort the surrounding unit of work without corrupting state. The remaining
kinds describe infrastructure or linkage failures.
"""

from protean.exceptions import ValidationError


class OutOfStock(ValidationError):
    """No store (or not enough stores) can supply the requested quantity."""

    def __init__(self, sku: str, requested: int, available: int, reason: str | None = None):
        self.sku = sku
        self.requested = requested
        self.available = available
        message = reason or f"Requested {requested} of {sku}, only {available} available"
        super().__init__({"sku": [message]})


class InvalidTransition(ValidationError):
    """A split order was asked to move to a status not reachable from its current one."""

    def __init__(self, current: str, target: str, message: str | None = None):
        self.current = current
        self.target = target
        super().__init__({"status": [message or f"Cannot transition from {current} to {target}"]})


class StaleInventoryRecord(ValidationError):
    """Compare-and-set on an inventory record lost against a concurrent write."""

    def __init__(self, record_id: str, expected: int, actual: int):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__({"revision": [f"Inventory record {record_id} is at revision {actual}, expected {expected}"]})


class FulfillmentError(Exception):
    """Base class for infrastructure and linkage failures."""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class SplitPersistenceFailure(FulfillmentError):
    """Split orders for an order could not all be written; none were committed."""


class ExternalCallFailure(FulfillmentError):
    """ERP, courier, payment or commerce call timed out or was rejected."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        timed_out: bool = False,
        retryable: bool = True,
        **context,
    ):
        super().__init__(message, **context)
        self.operation = operation
        self.timed_out = timed_out
        self.retryable = retryable


class MissingLinkage(FulfillmentError):
    """A courier or financial reference required by a transition is absent."""
