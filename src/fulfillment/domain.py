"""Fulfillment bounded context: multi-store order splitting and delivery.

Derives sellable stock per store and SKU, splits incoming orders across the
stores that can serve them, and drives every store-level split order through
its fulfillment lifecycle. Uses CQRS because courier, ERP and payment
providers own the authoritative state of their side of each transition.
"""

from protean.domain import Domain

from fulfillment.utils.logging import configure_logging, get_logger

configure_logging(log_file_prefix="storesplit")

logger = get_logger(__name__)

fulfillment = Domain(name="fulfillment")
