"""FastAPI routes for the fulfillment domain.

Routes are plain functions and run on FastAPI's threadpool; command
processing blocks on adapter calls.
"""

import json
import os

from fastapi import APIRouter, Header, HTTPException
from protean.utils.globals import current_domain

from fulfillment.api.schemas import (
    AdapterConfigResponse,
    AdvanceSplitOrderRequest,
    CancelSplitOrderRequest,
    ConfigureAdapterRequest,
    CourierCallbackRequest,
    CourierTaskResponse,
    EligibleStoresResponse,
    ErpPushResponse,
    InventoryRecordResponse,
    ManualSplitRequest,
    PlaceOnHoldRequest,
    RecomputeHybridStockRequest,
    RecomputeResponse,
    RefundResponse,
    RefundSplitOrderRequest,
    RegisterStoreRequest,
    ReleasedHoldsResponse,
    RevisionResponse,
    SetStockLevelsRequest,
    SplitIdsResponse,
    SplitOrderListResponse,
    SplitOrderResponse,
    StatusResponse,
    StoreCodeResponse,
    StoreResponse,
    SyncErpStockRequest,
    SyncResponse,
    UpdateOnHoldStatusRequest,
)
from fulfillment.commerce import get_commerce
from fulfillment.commerce.fake_adapter import FakeCommerce
from fulfillment.courier import get_courier
from fulfillment.courier.fake_adapter import FakeCourier
from fulfillment.erp import get_erp
from fulfillment.erp.fake_adapter import FakeErp
from fulfillment.errors import OutOfStock
from fulfillment.inventory.allocator import HybridInventoryAllocator
from fulfillment.inventory.record import InventoryRecord, record_id
from fulfillment.inventory.sync import PullErpStock, RecomputeHybridStock, SetStockLevels, SyncErpStock
from fulfillment.payments import get_payments
from fulfillment.payments.fake_adapter import FakePayments
from fulfillment.split_order.cancellation import CancelSplitOrder
from fulfillment.split_order.confirmation import ConfirmSplitOrder, RetryErpPush
from fulfillment.split_order.delivery import AdvanceSplitOrder, ApplyCourierStatus
from fulfillment.split_order.dispatch import DispatchCourierTask
from fulfillment.split_order.holding import PlaceSplitOrderOnHold, UpdateOnHoldStatus
from fulfillment.split_order.payment import ReconcileOrderPayment
from fulfillment.split_order.queries import find_splits
from fulfillment.split_order.refund import RefundSplitOrder
from fulfillment.split_order.split_order import SplitOrder
from fulfillment.splitting.creation import SplitIncomingOrder, SplitOrderManually
from fulfillment.store.directory import get_store, resolve_primary_store
from fulfillment.store.geo import GeoPoint
from fulfillment.store.registration import RegisterStore

# ---------------------------------------------------------------------------
# Store Router
# ---------------------------------------------------------------------------
store_router = APIRouter(prefix="/stores", tags=["stores"])


@store_router.post("", status_code=201, response_model=StoreCodeResponse)
def register_store(body: RegisterStoreRequest) -> StoreCodeResponse:
    """Register a store, or re-sync it if the code is already known."""
    command = RegisterStore(
        code=body.code,
        name=body.name,
        erp_store_id=body.erp_store_id,
        status=body.status,
        latitude=body.latitude,
        longitude=body.longitude,
        delivery_radius_tiers=json.dumps([tier.model_dump() for tier in body.delivery_radius_tiers]),
        backup_store_code=body.backup_store_code,
        is_backup_warehouse=body.is_backup_warehouse,
        cluster=body.cluster,
        pincodes=json.dumps(body.pincodes),
    )
    result = current_domain.process(command, asynchronous=False)
    return StoreCodeResponse(store_code=result)


@store_router.get("/{store_code}", response_model=StoreResponse)
def get_store_details(store_code: str) -> StoreResponse:
    return StoreResponse.from_store(get_store(store_code))


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("/sync", response_model=SyncResponse)
def sync_erp_stock(body: SyncErpStockRequest) -> SyncResponse:
    """Write ERP stock for a store; without levels, pull them from the store's ERP."""
    if body.levels is None:
        command = PullErpStock(store_code=body.store_code)
    else:
        command = SyncErpStock(
            store_code=body.store_code,
            levels=json.dumps([level.model_dump() for level in body.levels]),
        )
    synced = current_domain.process(command, asynchronous=False)
    return SyncResponse(store_code=body.store_code, synced=synced)


@inventory_router.put("/{store_code}/{sku}/levels", response_model=RevisionResponse)
def set_stock_levels(store_code: str, sku: str, body: SetStockLevelsRequest) -> RevisionResponse:
    command = SetStockLevels(
        store_code=store_code,
        sku=sku,
        buffer_stock=body.buffer_stock,
        threshold_stock=body.threshold_stock,
        expected_revision=body.expected_revision,
    )
    revision = current_domain.process(command, asynchronous=False)
    return RevisionResponse(revision=revision)


@inventory_router.post("/recompute", response_model=RecomputeResponse)
def recompute_hybrid_stock(body: RecomputeHybridStockRequest) -> RecomputeResponse:
    command = RecomputeHybridStock(store_code=body.store_code, sku=body.sku)
    changed = current_domain.process(command, asynchronous=False)
    return RecomputeResponse(changed=changed)


@inventory_router.get("/eligible-stores", response_model=EligibleStoresResponse)
def eligible_stores(
    sku: str,
    quantity: int = 1,
    store_code: str | None = None,
    pincode: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> EligibleStoresResponse:
    """Stores able to serve ``quantity`` of ``sku`` for a delivery address, best first."""
    point = GeoPoint(latitude, longitude) if latitude is not None and longitude is not None else None
    primary = resolve_primary_store(store_code, pincode, point)
    if primary is None:
        raise OutOfStock(sku, quantity, 0, reason="no serving store")

    allocator = HybridInventoryAllocator()
    return EligibleStoresResponse(
        sku=sku,
        quantity=quantity,
        primary_store_code=primary.code,
        store_codes=allocator.eligible_stores(sku, quantity, primary, point),
    )


@inventory_router.get("/{store_code}/{sku}", response_model=InventoryRecordResponse)
def get_inventory_record(store_code: str, sku: str) -> InventoryRecordResponse:
    record = current_domain.repository_for(InventoryRecord).get(record_id(store_code, sku))
    return InventoryRecordResponse.from_record(record)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/{order_id}/split", status_code=201, response_model=SplitIdsResponse)
def split_order(order_id: str) -> SplitIdsResponse:
    """Split an order across serving stores. Re-posting returns the existing splits."""
    split_ids = current_domain.process(SplitIncomingOrder(order_id=order_id), asynchronous=False)
    return SplitIdsResponse(order_id=order_id, split_ids=split_ids)


@order_router.post("/{order_id}/manual-split", status_code=201, response_model=SplitIdsResponse)
def split_order_manually(order_id: str, body: ManualSplitRequest) -> SplitIdsResponse:
    """Send the whole order to one store, bypassing the split engine."""
    split_ids = current_domain.process(
        SplitOrderManually(order_id=order_id, store_code=body.store_code), asynchronous=False
    )
    return SplitIdsResponse(order_id=order_id, split_ids=split_ids)


@order_router.post("/{order_id}/payment-status", response_model=ReleasedHoldsResponse)
def reconcile_payment(order_id: str) -> ReleasedHoldsResponse:
    released = current_domain.process(ReconcileOrderPayment(order_id=order_id), asynchronous=False)
    return ReleasedHoldsResponse(order_id=order_id, released=released)


# ---------------------------------------------------------------------------
# Split Order Router
# ---------------------------------------------------------------------------
split_order_router = APIRouter(prefix="/split-orders", tags=["split-orders"])


@split_order_router.get("", response_model=SplitOrderListResponse)
def list_split_orders(order_reference_id: str | None = None, status: str | None = None) -> SplitOrderListResponse:
    splits = find_splits(order_reference_id=order_reference_id, status=status)
    return SplitOrderListResponse(split_orders=[SplitOrderResponse.from_split(split) for split in splits])


@split_order_router.get("/{split_id}", response_model=SplitOrderResponse)
def get_split_order(split_id: str) -> SplitOrderResponse:
    split = current_domain.repository_for(SplitOrder).get(split_id)
    return SplitOrderResponse.from_split(split)


@split_order_router.put("/{split_id}/hold", response_model=StatusResponse)
def place_on_hold(split_id: str, body: PlaceOnHoldRequest) -> StatusResponse:
    command = PlaceSplitOrderOnHold(split_id=split_id, on_hold_status=body.on_hold_status, comment=body.comment)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="on_hold")


@split_order_router.put("/{split_id}/hold-status", response_model=StatusResponse)
def update_on_hold_status(split_id: str, body: UpdateOnHoldStatusRequest) -> StatusResponse:
    current_domain.process(
        UpdateOnHoldStatus(split_id=split_id, on_hold_status=body.on_hold_status), asynchronous=False
    )
    return StatusResponse(status="on_hold_status_updated")


@split_order_router.put("/{split_id}/confirm", response_model=ErpPushResponse)
def confirm_split_order(split_id: str) -> ErpPushResponse:
    """Confirm the split and push it to the store's ERP."""
    erp_push_status = current_domain.process(ConfirmSplitOrder(split_id=split_id), asynchronous=False)
    return ErpPushResponse(split_id=split_id, erp_push_status=erp_push_status)


@split_order_router.put("/{split_id}/retry-erp-push", response_model=ErpPushResponse)
def retry_erp_push(split_id: str) -> ErpPushResponse:
    erp_push_status = current_domain.process(RetryErpPush(split_id=split_id), asynchronous=False)
    return ErpPushResponse(split_id=split_id, erp_push_status=erp_push_status)


@split_order_router.put("/{split_id}/dispatch", response_model=CourierTaskResponse)
def dispatch_courier_task(split_id: str) -> CourierTaskResponse:
    task_id = current_domain.process(DispatchCourierTask(split_id=split_id), asynchronous=False)
    if task_id is None:
        split = current_domain.repository_for(SplitOrder).get(split_id)
        return CourierTaskResponse(split_id=split_id, serviceable=False, message=split.courier.message)
    return CourierTaskResponse(split_id=split_id, task_id=task_id)


@split_order_router.put("/{split_id}/advance", response_model=StatusResponse)
def advance_split_order(split_id: str, body: AdvanceSplitOrderRequest) -> StatusResponse:
    """Move the split along the delivery path by hand (store pickup, courier outage)."""
    status = current_domain.process(
        AdvanceSplitOrder(split_id=split_id, target_status=body.target_status), asynchronous=False
    )
    return StatusResponse(status=status)


@split_order_router.put("/{split_id}/cancel", response_model=StatusResponse)
def cancel_split_order(split_id: str, body: CancelSplitOrderRequest) -> StatusResponse:
    command = CancelSplitOrder(
        split_id=split_id,
        reason=body.reason,
        cancelled_by=body.cancelled_by,
        details=json.dumps(body.details) if body.details else None,
    )
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


@split_order_router.put("/{split_id}/refund", response_model=RefundResponse)
def refund_split_order(split_id: str, body: RefundSplitOrderRequest) -> RefundResponse:
    refund_id = current_domain.process(RefundSplitOrder(split_id=split_id, amount=body.amount), asynchronous=False)
    return RefundResponse(split_id=split_id, refund_id=refund_id)


# ---------------------------------------------------------------------------
# Courier Router
# ---------------------------------------------------------------------------
courier_router = APIRouter(prefix="/courier", tags=["courier"])


@courier_router.post("/callbacks", response_model=StatusResponse)
def courier_callback(
    body: CourierCallbackRequest,
    x_courier_secret: str = Header(default=""),
) -> StatusResponse:
    """Apply a courier status callback, authenticated by the shared secret."""
    if not get_courier().verify_callback_secret(x_courier_secret):
        raise HTTPException(status_code=401, detail="Invalid courier callback secret")

    command = ApplyCourierStatus(**body.model_dump())
    status = current_domain.process(command, asynchronous=False)
    return StatusResponse(status=status)


# ---------------------------------------------------------------------------
# Fake adapter configuration (non-production only)
# ---------------------------------------------------------------------------
adapter_router = APIRouter(prefix="/adapters", tags=["adapters"])

_FAKE_ADAPTERS = {
    "erp": (get_erp, FakeErp),
    "courier": (get_courier, FakeCourier),
    "payments": (get_payments, FakePayments),
    "commerce": (get_commerce, FakeCommerce),
}


@adapter_router.post("/{adapter_name}/configure", response_model=AdapterConfigResponse)
def configure_adapter(adapter_name: str, body: ConfigureAdapterRequest) -> AdapterConfigResponse:
    """Configure a fake adapter's behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Adapter configuration not available in production")
    if adapter_name not in _FAKE_ADAPTERS:
        raise HTTPException(status_code=404, detail=f"Unknown adapter: {adapter_name}")

    getter, fake_type = _FAKE_ADAPTERS[adapter_name]
    adapter = getter()
    if not isinstance(adapter, fake_type):
        raise HTTPException(status_code=400, detail=f"Configuration only available for {fake_type.__name__}")

    adapter.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return AdapterConfigResponse(
        adapter=type(adapter).__name__,
        should_succeed=adapter.should_succeed,
        failure_reason=adapter.failure_reason,
    )
