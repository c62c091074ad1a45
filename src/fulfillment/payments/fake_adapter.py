"""Configurable fake payment provider for development and testing.

Holds transactions per order in memory and records every refund call, so
tests can assert on what would have been sent to the provider.
"""

from uuid import uuid4

from fulfillment.adapters import AdapterContext
from fulfillment.payments.port import PaymentPort, RefundResult, Transaction


class FakePayments(PaymentPort):
    """Configurable fake payment provider."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Refund declined"
        self.transactions: dict[str, list[Transaction]] = {}
        self.refunds: dict[str, RefundResult] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Refund declined") -> None:
        """Configure provider behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def add_transaction(self, order_id: str, transaction: Transaction) -> None:
        self.transactions.setdefault(order_id, []).append(transaction)

    def find_original_transaction(self, context: AdapterContext, order_id: str) -> Transaction | None:
        self.calls.append({"method": "find_original_transaction", "order_id": order_id})
        return next((t for t in self.transactions.get(order_id, []) if t.is_original_payment()), None)

    def refund(
        self,
        context: AdapterContext,
        order_id: str,
        transaction: Transaction,
        amount: float,
        idempotency_key: str,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "order_id": order_id,
                "parent_id": transaction.transaction_id,
                "amount": amount,
                "idempotency_key": idempotency_key,
            }
        )
        if not self.should_succeed:
            return RefundResult(success=False, gateway_status="failed", failure_reason=self.failure_reason)

        if idempotency_key not in self.refunds:
            self.refunds[idempotency_key] = RefundResult(
                success=True,
                refund_id=f"fake_refund_{uuid4().hex[:12]}",
                gateway_status="success",
            )
        return self.refunds[idempotency_key]
