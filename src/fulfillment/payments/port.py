"""Payment port: abstract interface to the payment provider.

Refunds are always issued against the order's original successful sale or
capture transaction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from fulfillment.adapters import AdapterContext

ORIGINAL_TRANSACTION_KINDS = ("sale", "capture")


@dataclass(frozen=True)
class Transaction:
    transaction_id: str
    kind: str
    status: str
    amount: float
    currency: str = "INR"
    gateway: str = ""

    def is_original_payment(self) -> bool:
        return self.kind.lower() in ORIGINAL_TRANSACTION_KINDS and self.status.lower() == "success"


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    refund_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentPort(ABC):
    """Abstract payment provider interface."""

    @abstractmethod
    def find_original_transaction(self, context: AdapterContext, order_id: str) -> Transaction | None:
        """Return the successful sale/capture transaction of the order, if any."""
        ...

    @abstractmethod
    def refund(
        self,
        context: AdapterContext,
        order_id: str,
        transaction: Transaction,
        amount: float,
        idempotency_key: str,
    ) -> RefundResult:
        """Refund ``amount`` against ``transaction`` (the parent of the refund)."""
        ...
