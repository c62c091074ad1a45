"""Fake ERP adapter: in-memory ERP for testing and development.

Records every push, returns stock figures set up by the test, and can be
told to reject pushes or to fail at the transport level a number of times.
"""

from uuid import uuid4

from fulfillment.adapters import AdapterContext
from fulfillment.erp.port import ErpAck, ErpPort, StockLevel
from fulfillment.errors import ExternalCallFailure


class FakeErp(ErpPort):
    """Fake ERP that accepts every push by default."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "ERP rejected the order"
        self.transport_failures: int = 0
        self.orders: dict[str, dict] = {}
        self.stock: dict[str, dict[str, int]] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "ERP rejected the order",
        transport_failures: int = 0,
    ) -> None:
        """Configure the fake ERP behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.transport_failures = transport_failures

    def set_stock(self, erp_store_id: str, levels: dict[str, int]) -> None:
        self.stock[erp_store_id] = dict(levels)

    def _maybe_fail_transport(self, operation: str) -> None:
        if self.transport_failures > 0:
            self.transport_failures -= 1
            raise ExternalCallFailure("ERP connection reset", operation=operation)

    def push_order(
        self,
        context: AdapterContext,
        erp_store_id: str,
        split_id: str,
        order_number: str,
        line_items: list[dict],
    ) -> ErpAck:
        self.calls.append(
            {
                "method": "push_order",
                "shop_id": context.shop_id,
                "erp_store_id": erp_store_id,
                "split_id": split_id,
                "order_number": order_number,
                "line_items": line_items,
            }
        )
        self._maybe_fail_transport("erp.push_order")

        if not self.should_succeed:
            return ErpAck(success=False, failure_reason=self.failure_reason)

        if split_id not in self.orders:
            self.orders[split_id] = {
                "reference": f"ERP-{uuid4().hex[:10].upper()}",
                "erp_store_id": erp_store_id,
                "line_items": line_items,
            }
        return ErpAck(success=True, reference=self.orders[split_id]["reference"])

    def pull_stock(self, context: AdapterContext, erp_store_id: str) -> list[StockLevel]:
        self.calls.append({"method": "pull_stock", "shop_id": context.shop_id, "erp_store_id": erp_store_id})
        self._maybe_fail_transport("erp.pull_stock")
        return [StockLevel(sku=sku, stock=stock) for sku, stock in self.stock.get(erp_store_id, {}).items()]
