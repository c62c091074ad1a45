"""HTTP courier adapter: books and cancels delivery tasks over the provider's REST API."""

import hmac

import httpx
import structlog

from fulfillment.adapters import AdapterContext
from fulfillment.courier.port import CourierCancelResult, CourierPort, CourierQuote, CourierTaskResult
from fulfillment.errors import ExternalCallFailure

logger = structlog.get_logger(__name__)


class HttpCourier(CourierPort):
    def __init__(
        self,
        base_url: str,
        access_token: str,
        webhook_secret: str,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("COURIER_BASE_URL is required for the http courier adapter")
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.webhook_secret = webhook_secret
        self.client = client or httpx.Client()

    def _post(self, operation: str, path: str, context: AdapterContext, payload: dict) -> dict:
        try:
            response = self.client.post(
                f"{self.base_url}{path}",
                json=payload,
                headers={"access-token": self.access_token, "X-Request-Id": context.request_id},
                timeout=context.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ExternalCallFailure(f"Courier timed out: {exc}", operation=operation, timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise ExternalCallFailure(f"Courier unreachable: {exc}", operation=operation) from exc

        if response.status_code >= 500:
            raise ExternalCallFailure(f"Courier returned {response.status_code}", operation=operation)
        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"message": response.text}
        if not response.is_success:
            body.setdefault("status", False)
            body.setdefault("message", f"HTTP {response.status_code}")
        return body

    def check_serviceability(self, context: AdapterContext, pickup: dict, drop: dict) -> CourierQuote:
        body = self._post(
            "courier.check_serviceability",
            "/getServiceability",
            context,
            {"store_id": context.shop_id, "pickupDetails": pickup, "dropDetails": drop},
        )
        if not body.get("status"):
            return CourierQuote(
                location_serviceable=False,
                rider_serviceable=False,
                message=body.get("message") or "Not serviceable",
            )

        serviceability = body.get("serviceability") or {}
        payouts = body.get("payouts") or {}
        location = bool(serviceability.get("locationServiceAble", True))
        rider = bool(serviceability.get("riderServiceAble", True))
        message = payouts.get("message") or body.get("message")
        if not location:
            message = message or "Drop location is outside the delivery zone"
        elif not rider:
            message = message or "No rider available"
        return CourierQuote(
            location_serviceable=location,
            rider_serviceable=rider,
            payout_price=round(float(payouts.get("price", 0)), 2),
            payout_tax=round(float(payouts.get("tax", 0)), 2),
            payout_total=round(float(payouts.get("total", 0)), 2),
            message=message,
        )

    def create_task(
        self,
        context: AdapterContext,
        split_id: str,
        pickup: dict,
        drop: dict,
        items: list[dict],
    ) -> CourierTaskResult:
        body = self._post(
            "courier.create_task",
            "/createTask",
            context,
            {
                "store_id": context.shop_id,
                "order_details": {"order_id": split_id, "order_items": items},
                "pickup_details": pickup,
                "drop_details": drop,
            },
        )
        if not body.get("status"):
            logger.warning("Courier refused task", split_id=split_id, message=body.get("message"))
            return CourierTaskResult(success=False, failure_reason=body.get("message") or "Task refused")

        return CourierTaskResult(
            success=True,
            task_id=str(body["taskId"]),
            status_code=body.get("Status_code"),
            message=body.get("message"),
            tracking_url=body.get("tracking_url"),
        )

    def cancel_task(self, context: AdapterContext, task_id: str) -> CourierCancelResult:
        body = self._post("courier.cancel_task", "/cancelTask", context, {"taskId": task_id})
        if not body.get("status"):
            return CourierCancelResult(success=False, failure_reason=body.get("message") or "Cancel refused")
        return CourierCancelResult(success=True, status_code=body.get("status_code", "CANCELLED"))

    def verify_callback_secret(self, secret: str) -> bool:
        if not self.webhook_secret:
            return False
        return hmac.compare_digest(secret or "", self.webhook_secret)
