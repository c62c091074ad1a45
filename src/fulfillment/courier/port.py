"""Courier port: abstract interface for last-mile delivery providers.

The core checks serviceability, then creates and cancels delivery tasks
through this port. Status updates come back asynchronously
through the courier callback endpoint, authenticated with a shared secret.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from fulfillment.adapters import AdapterContext


@dataclass(frozen=True)
class CourierQuote:
    """Serviceability and payout quote for one pickup to drop leg."""

    location_serviceable: bool
    rider_serviceable: bool
    payout_price: float = 0.0
    payout_tax: float = 0.0
    payout_total: float = 0.0
    message: str | None = None

    @property
    def serviceable(self) -> bool:
        return self.location_serviceable and self.rider_serviceable


@dataclass(frozen=True)
class CourierTaskResult:
    """Result of creating a delivery task."""

    success: bool
    task_id: str | None = None
    status_code: str | None = None
    message: str | None = None
    tracking_url: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CourierCancelResult:
    success: bool
    status_code: str | None = None
    failure_reason: str | None = None


class CourierPort(ABC):
    """Abstract interface for courier adapters."""

    @abstractmethod
    def check_serviceability(self, context: AdapterContext, pickup: dict, drop: dict) -> CourierQuote:
        """Ask whether the courier can deliver from ``pickup`` to ``drop`` and at what payout."""
        ...

    @abstractmethod
    def create_task(
        self,
        context: AdapterContext,
        split_id: str,
        pickup: dict,
        drop: dict,
        items: list[dict],
    ) -> CourierTaskResult:
        """Book a delivery task from the store (``pickup``) to the customer (``drop``).

        Idempotent by ``split_id``: booking the same split twice returns the
        existing task.
        """
        ...

    @abstractmethod
    def cancel_task(self, context: AdapterContext, task_id: str) -> CourierCancelResult:
        """Cancel a booked task. Cancelling an already cancelled task succeeds."""
        ...

    @abstractmethod
    def verify_callback_secret(self, secret: str) -> bool:
        """Check the shared secret sent with a status callback."""
        ...
