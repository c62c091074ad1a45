"""HTTP ERP adapter: talks to the store ERP's REST API with httpx.

Server errors and transport problems raise a retryable
``ExternalCallFailure``; 4xx responses are business rejections and come
back as a failed ``ErpAck``.
"""

import httpx
import structlog

from fulfillment.adapters import AdapterContext
from fulfillment.erp.port import ErpAck, ErpPort, StockLevel
from fulfillment.errors import ExternalCallFailure

logger = structlog.get_logger(__name__)


class HttpErp(ErpPort):
    def __init__(self, base_url: str, auth_token: str, client: httpx.Client | None = None) -> None:
        if not base_url:
            raise ValueError("ERP_BASE_URL is required for the http ERP adapter")
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.client = client or httpx.Client()

    def _headers(self, context: AdapterContext) -> dict:
        return {
            "X-Auth-Token": self.auth_token,
            "X-Request-Id": context.request_id,
            "X-Shop-Id": context.shop_id,
        }

    def _send(self, operation: str, method: str, path: str, context: AdapterContext, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(context),
                timeout=context.timeout,
                **kwargs,
            )
        except httpx.TimeoutException as exc:
            raise ExternalCallFailure(f"ERP timed out: {exc}", operation=operation, timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise ExternalCallFailure(f"ERP unreachable: {exc}", operation=operation) from exc

        if response.status_code >= 500:
            raise ExternalCallFailure(f"ERP returned {response.status_code}", operation=operation)
        return response

    def push_order(
        self,
        context: AdapterContext,
        erp_store_id: str,
        split_id: str,
        order_number: str,
        line_items: list[dict],
    ) -> ErpAck:
        response = self._send(
            "erp.push_order",
            "POST",
            "/orders",
            context,
            json={
                "storeId": erp_store_id,
                "orderId": split_id,
                "orderNumber": order_number,
                "items": [
                    {"itemCode": item["sku"], "quantity": item["quantity"], "price": item["price"]}
                    for item in line_items
                ],
            },
        )
        if response.is_success:
            body = response.json()
            return ErpAck(success=True, reference=str(body.get("reference") or body.get("orderId") or split_id))

        logger.warning("ERP rejected order push", split_id=split_id, status_code=response.status_code)
        return ErpAck(success=False, failure_reason=response.text or f"HTTP {response.status_code}")

    def pull_stock(self, context: AdapterContext, erp_store_id: str) -> list[StockLevel]:
        response = self._send("erp.pull_stock", "GET", f"/stores/{erp_store_id}/stock", context)
        if not response.is_success:
            raise ExternalCallFailure(
                f"ERP refused stock pull: HTTP {response.status_code}",
                operation="erp.pull_stock",
                retryable=False,
            )
        return [StockLevel(sku=str(row["sku"]), stock=int(row["stock"])) for row in response.json()]
