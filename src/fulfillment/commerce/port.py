"""Commerce platform port: the store front that owns orders.

Orders are read-only facts to the fulfillment core. The core writes back
only fulfillment and cancellation of split orders and the order's financial
status after a refund.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from fulfillment.adapters import AdapterContext


class FinancialStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


class ShippingMethod(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class OrderLine:
    line_item_id: str
    sku: str
    quantity: int
    price: float


@dataclass(frozen=True)
class DeliveryAddress:
    pincode: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    name: str = ""
    phone: str = ""
    address: str = ""


@dataclass(frozen=True)
class Order:
    order_id: str
    order_number: str
    line_items: tuple[OrderLine, ...]
    currency: str = "INR"
    customer_id: str = ""
    financial_status: str = FinancialStatus.PENDING.value
    shipping_method: str = ShippingMethod.DELIVERY.value
    delivery: DeliveryAddress = field(default_factory=DeliveryAddress)
    preferred_store_code: str | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None

    def is_paid(self) -> bool:
        return self.financial_status == FinancialStatus.PAID.value


@dataclass(frozen=True)
class CommerceResult:
    success: bool
    failure_reason: str | None = None


class CommercePort(ABC):
    """Abstract interface to the commerce platform."""

    @abstractmethod
    def get_order(self, context: AdapterContext, order_id: str) -> Order | None:
        ...

    @abstractmethod
    def fulfill_split(
        self, context: AdapterContext, order_id: str, split_id: str, line_items: list[dict]
    ) -> CommerceResult:
        """Mark the split's line items fulfilled on the platform."""
        ...

    @abstractmethod
    def cancel_split(self, context: AdapterContext, order_id: str, split_id: str, reason: str) -> CommerceResult:
        ...

    @abstractmethod
    def update_financial_status(self, context: AdapterContext, order_id: str, status: str) -> CommerceResult:
        ...
