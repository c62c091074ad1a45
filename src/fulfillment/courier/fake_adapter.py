"""Fake courier adapter: deterministic delivery provider for testing and development."""

import hmac
from uuid import uuid4

from fulfillment.adapters import AdapterContext
from fulfillment.courier.port import CourierCancelResult, CourierPort, CourierQuote, CourierTaskResult
from fulfillment.errors import ExternalCallFailure


class FakeCourier(CourierPort):
    """Fake courier that books every task by default."""

    def __init__(self, secret: str = "fake-courier-secret") -> None:
        self.secret = secret
        self.should_succeed = True
        self.failure_reason = "Courier unavailable"
        self.transport_failures = 0
        self.location_serviceable = True
        self.rider_serviceable = True
        self.unserviceable_reason = "Rider not available"
        self.tasks: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Courier unavailable",
        transport_failures: int = 0,
        location_serviceable: bool = True,
        rider_serviceable: bool = True,
        unserviceable_reason: str = "Rider not available",
    ) -> None:
        """Configure the fake courier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.transport_failures = transport_failures
        self.location_serviceable = location_serviceable
        self.rider_serviceable = rider_serviceable
        self.unserviceable_reason = unserviceable_reason

    def _maybe_fail_transport(self, operation: str) -> None:
        if self.transport_failures > 0:
            self.transport_failures -= 1
            raise ExternalCallFailure("Courier request timed out", operation=operation, timed_out=True)

    def check_serviceability(self, context: AdapterContext, pickup: dict, drop: dict) -> CourierQuote:
        self.calls.append({"method": "check_serviceability", "shop_id": context.shop_id})
        self._maybe_fail_transport("courier.check_serviceability")
        if not (self.location_serviceable and self.rider_serviceable):
            return CourierQuote(
                location_serviceable=self.location_serviceable,
                rider_serviceable=self.rider_serviceable,
                message=self.unserviceable_reason,
            )
        return CourierQuote(
            location_serviceable=True,
            rider_serviceable=True,
            payout_price=40.0,
            payout_tax=7.2,
            payout_total=47.2,
        )

    def create_task(
        self,
        context: AdapterContext,
        split_id: str,
        pickup: dict,
        drop: dict,
        items: list[dict],
    ) -> CourierTaskResult:
        self.calls.append({"method": "create_task", "shop_id": context.shop_id, "split_id": split_id})
        self._maybe_fail_transport("courier.create_task")
        if not self.should_succeed:
            return CourierTaskResult(success=False, failure_reason=self.failure_reason)

        existing = next(
            (t for t in self.tasks.values() if t["split_id"] == split_id and t["status_code"] != "CANCELLED"),
            None,
        )
        if existing is None:
            task_id = f"task-{uuid4().hex[:10]}"
            existing = self.tasks[task_id] = {
                "task_id": task_id,
                "split_id": split_id,
                "pickup": pickup,
                "drop": drop,
                "items": items,
                "status_code": "ACCEPTED",
            }

        return CourierTaskResult(
            success=True,
            task_id=existing["task_id"],
            status_code=existing["status_code"],
            message="Task created",
            tracking_url=f"https://fake-courier.example.com/track/{existing['task_id']}",
        )

    def cancel_task(self, context: AdapterContext, task_id: str) -> CourierCancelResult:
        self.calls.append({"method": "cancel_task", "shop_id": context.shop_id, "task_id": task_id})
        self._maybe_fail_transport("courier.cancel_task")
        if not self.should_succeed:
            return CourierCancelResult(success=False, failure_reason=self.failure_reason)
        if task_id in self.tasks:
            self.tasks[task_id]["status_code"] = "CANCELLED"
        return CourierCancelResult(success=True, status_code="CANCELLED")

    def verify_callback_secret(self, secret: str) -> bool:
        return hmac.compare_digest(secret or "", self.secret)
