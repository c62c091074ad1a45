"""ERP port: abstract interface to the store ERP.

Confirmed split orders are pushed to the ERP of the serving store, and
on-hand stock is pulled back from it. Pushes are idempotent by split id.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from fulfillment.adapters import AdapterContext


@dataclass(frozen=True)
class ErpAck:
    """Result of pushing a split order to the ERP."""

    success: bool
    reference: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class StockLevel:
    sku: str
    stock: int


class ErpPort(ABC):
    """Abstract interface for ERP adapters."""

    @abstractmethod
    def push_order(
        self,
        context: AdapterContext,
        erp_store_id: str,
        split_id: str,
        order_number: str,
        line_items: list[dict],
    ) -> ErpAck:
        """Create the split order in the store's ERP.

        ``line_items`` carry ``sku``, ``quantity`` and ``price``. Pushing the
        same ``split_id`` twice must not create a second ERP order.
        """
        ...

    @abstractmethod
    def pull_stock(self, context: AdapterContext, erp_store_id: str) -> list[StockLevel]:
        """Return current on-hand stock for every SKU the store carries."""
        ...
