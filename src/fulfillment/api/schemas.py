"""Pydantic API schemas for the fulfillment domain.

These are the external API contracts, separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

import json

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class DeliveryRadiusTierRequest(BaseModel):
    radius_km: float
    tier: str | None = None


class RegisterStoreRequest(BaseModel):
    code: str
    name: str
    erp_store_id: str | None = None
    status: str = "active"
    latitude: float | None = None
    longitude: float | None = None
    delivery_radius_tiers: list[DeliveryRadiusTierRequest] = []
    backup_store_code: str | None = None
    is_backup_warehouse: bool = False
    cluster: str | None = None
    pincodes: list[str] = []


class StockLevelRequest(BaseModel):
    sku: str
    stock: int


class SyncErpStockRequest(BaseModel):
    """ERP stock for one store. Without ``levels`` the counts are pulled from the ERP."""

    store_code: str
    levels: list[StockLevelRequest] | None = None


class SetStockLevelsRequest(BaseModel):
    buffer_stock: int | None = Field(default=None, ge=0)
    threshold_stock: int | None = Field(default=None, ge=0)
    expected_revision: int | None = None


class RecomputeHybridStockRequest(BaseModel):
    store_code: str | None = None
    sku: str | None = None


class ManualSplitRequest(BaseModel):
    store_code: str


class PlaceOnHoldRequest(BaseModel):
    on_hold_status: str
    comment: str | None = None


class UpdateOnHoldStatusRequest(BaseModel):
    on_hold_status: str = ""


class AdvanceSplitOrderRequest(BaseModel):
    target_status: str


class CancelSplitOrderRequest(BaseModel):
    reason: str
    cancelled_by: str | None = None
    details: dict | None = None


class RefundSplitOrderRequest(BaseModel):
    amount: float | None = Field(default=None, gt=0)


class CourierCallbackRequest(BaseModel):
    task_id: str | None = None
    split_id: str | None = None
    status_code: str
    message: str | None = None
    rider_name: str | None = None
    rider_contact: str | None = None
    vehicle_number: str | None = None
    vehicle_type: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class ConfigureAdapterRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Unavailable"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str


class StoreCodeResponse(BaseModel):
    store_code: str


class StoreResponse(BaseModel):
    code: str
    name: str
    erp_store_id: str | None = None
    status: str
    latitude: float | None = None
    longitude: float | None = None
    delivery_radius_tiers: list[dict] = []
    backup_store_code: str | None = None
    is_backup_warehouse: bool = False
    cluster: str | None = None
    pincodes: list[str] = []

    @classmethod
    def from_store(cls, store) -> "StoreResponse":
        return cls(
            code=store.code,
            name=store.name,
            erp_store_id=store.erp_store_id,
            status=store.status,
            latitude=store.latitude,
            longitude=store.longitude,
            delivery_radius_tiers=store.radius_tiers(),
            backup_store_code=store.backup_store_code,
            is_backup_warehouse=bool(store.is_backup_warehouse),
            cluster=store.cluster,
            pincodes=store.serviced_pincodes(),
        )


class SyncResponse(BaseModel):
    store_code: str
    synced: int


class RevisionResponse(BaseModel):
    revision: int


class RecomputeResponse(BaseModel):
    changed: int


class InventoryRecordResponse(BaseModel):
    store_code: str
    sku: str
    erp_stock: int
    buffer_stock: int
    backup_stock: int
    threshold_stock: int
    online_stock: int
    hybrid_stock: int
    hybrid_mode: str | None = None
    revision: int

    @classmethod
    def from_record(cls, record) -> "InventoryRecordResponse":
        return cls(
            store_code=record.store_code,
            sku=record.sku,
            erp_stock=record.erp_stock or 0,
            buffer_stock=record.buffer_stock or 0,
            backup_stock=record.backup_stock or 0,
            threshold_stock=record.threshold_stock or 0,
            online_stock=record.online_stock or 0,
            hybrid_stock=record.hybrid_stock or 0,
            hybrid_mode=record.hybrid_mode,
            revision=record.revision or 0,
        )


class EligibleStoresResponse(BaseModel):
    sku: str
    quantity: int
    primary_store_code: str
    store_codes: list[str]


class SplitIdsResponse(BaseModel):
    order_id: str
    split_ids: list[str]


class ReleasedHoldsResponse(BaseModel):
    order_id: str
    released: list[str]


class ErpPushResponse(BaseModel):
    split_id: str
    erp_push_status: str


class CourierTaskResponse(BaseModel):
    split_id: str
    task_id: str | None = None
    serviceable: bool = True
    message: str | None = None


class RefundResponse(BaseModel):
    split_id: str
    refund_id: str


class SplitLineItemResponse(BaseModel):
    line_item_id: str
    sku: str
    quantity: int
    price: float
    reserved: bool


class SplitOrderResponse(BaseModel):
    split_id: str
    order_reference_id: str
    order_number: str
    store_code: str
    store_name: str | None = None
    order_status: str
    on_hold_status: str | None = None
    on_hold_comment: str | None = None
    items: list[SplitLineItemResponse]
    rider_name: str | None = None
    rider_contact: str | None = None
    timestamps: dict = {}
    courier_task_id: str | None = None
    courier_status_code: str | None = None
    tracking_url: str | None = None
    payout_total: float | None = None
    erp_push_status: str | None = None
    erp_reference: str | None = None
    refund_status: str | None = None
    refund_id: str | None = None
    refund_amount: float | None = None
    last_error: str | None = None
    inventory_released: bool = False
    cancellation: dict | None = None

    @classmethod
    def from_split(cls, split) -> "SplitOrderResponse":
        return cls(
            split_id=split.split_id(),
            order_reference_id=str(split.order_reference_id),
            order_number=split.order_number,
            store_code=split.store_code,
            store_name=split.store_name,
            order_status=split.order_status,
            on_hold_status=split.on_hold_status,
            on_hold_comment=split.on_hold_comment,
            items=[
                SplitLineItemResponse(
                    line_item_id=str(item.line_item_id),
                    sku=item.sku,
                    quantity=item.quantity,
                    price=item.price or 0.0,
                    reserved=bool(item.reserved),
                )
                for item in split.items or []
            ],
            rider_name=split.rider_name,
            rider_contact=split.rider_contact,
            timestamps=split.timestamp_map(),
            courier_task_id=split.courier.task_id if split.courier else None,
            courier_status_code=split.courier.status_code if split.courier else None,
            tracking_url=split.courier.tracking_url if split.courier else None,
            payout_total=split.payout.total if split.payout else None,
            erp_push_status=split.erp_push_status,
            erp_reference=split.erp_reference,
            refund_status=split.refund_status,
            refund_id=split.refund_id,
            refund_amount=split.refund_amount,
            last_error=split.last_error,
            inventory_released=bool(split.inventory_released),
            cancellation=json.loads(split.cancellation) if split.cancellation else None,
        )


class SplitOrderListResponse(BaseModel):
    split_orders: list[SplitOrderResponse]


class AdapterConfigResponse(BaseModel):
    adapter: str
    should_succeed: bool
    failure_reason: str
