"""Fake commerce platform: in-memory orders for testing and development."""

from dataclasses import replace

from fulfillment.adapters import AdapterContext
from fulfillment.commerce.port import CommercePort, CommerceResult, Order


class FakeCommerce(CommercePort):
    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.fulfilled: dict[str, list[dict]] = {}
        self.cancelled: dict[str, str] = {}
        self.should_succeed = True
        self.failure_reason = "Commerce platform unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Commerce platform unavailable") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_order(self, order: Order) -> None:
        self.orders[order.order_id] = order

    def set_financial_status(self, order_id: str, status: str) -> None:
        self.orders[order_id] = replace(self.orders[order_id], financial_status=status)

    def get_order(self, context: AdapterContext, order_id: str) -> Order | None:
        self.calls.append({"method": "get_order", "shop_id": context.shop_id, "order_id": order_id})
        return self.orders.get(order_id)

    def fulfill_split(
        self, context: AdapterContext, order_id: str, split_id: str, line_items: list[dict]
    ) -> CommerceResult:
        self.calls.append({"method": "fulfill_split", "order_id": order_id, "split_id": split_id})
        if not self.should_succeed:
            return CommerceResult(success=False, failure_reason=self.failure_reason)
        self.fulfilled[split_id] = line_items
        return CommerceResult(success=True)

    def cancel_split(self, context: AdapterContext, order_id: str, split_id: str, reason: str) -> CommerceResult:
        self.calls.append({"method": "cancel_split", "order_id": order_id, "split_id": split_id})
        if not self.should_succeed:
            return CommerceResult(success=False, failure_reason=self.failure_reason)
        self.cancelled[split_id] = reason
        return CommerceResult(success=True)

    def update_financial_status(self, context: AdapterContext, order_id: str, status: str) -> CommerceResult:
        self.calls.append({"method": "update_financial_status", "order_id": order_id, "status": status})
        if not self.should_succeed:
            return CommerceResult(success=False, failure_reason=self.failure_reason)
        if order_id in self.orders:
            self.set_financial_status(order_id, status)
        return CommerceResult(success=True)
