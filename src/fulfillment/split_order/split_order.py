"""SplitOrder aggregate (CQRS): the part of an order served by one store.

Every split order moves through the fulfillment lifecycle on its own. Refund
is a financial overlay recorded next to the delivery status, not a status.

State Machine:
    NEW ⇄ ON_HOLD
    {NEW, ON_HOLD} → CONFIRM → READY_FOR_PICKUP → OUT_FOR_DELIVERY → DELIVERED
    {NEW, ON_HOLD, CONFIRM, READY_FOR_PICKUP, OUT_FOR_DELIVERY} → CANCELLED

Courier callbacks are applied in the order
    ALLOTTED < REACHED_PICKUP < DISPATCHED < ARRIVED_CUSTOMER_DOORSTEP < DELIVERED
and a callback that is not later than the last one applied is ignored.
"""

import json
from collections import defaultdict
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from fulfillment.domain import fulfillment
from fulfillment.errors import InvalidTransition
from fulfillment.split_order.events import (
    CourierStatusRecorded,
    CourierTaskLinked,
    CourierUnserviceable,
    OnHoldStatusUpdated,
    PaymentHoldReleased,
    SplitOrderCancelled,
    SplitOrderConfirmed,
    SplitOrderCreated,
    SplitOrderDelivered,
    SplitOrderErpPushFailed,
    SplitOrderOutForDelivery,
    SplitOrderPlacedOnHold,
    SplitOrderPushedToErp,
    SplitOrderReadyForPickup,
    SplitOrderRefunded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class SplitOrderStatus(Enum):
    NEW = "new"
    ON_HOLD = "on_hold"
    CONFIRM = "confirm"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ErpPushStatus(Enum):
    PENDING = "pending"
    PUSHED = "pushed"
    FAILED = "failed"


class RefundStatus(Enum):
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"


OUT_OF_STOCK_HOLD = "out_of_stock"

_VALID_TRANSITIONS = {
    SplitOrderStatus.NEW: {SplitOrderStatus.ON_HOLD, SplitOrderStatus.CONFIRM, SplitOrderStatus.CANCELLED},
    SplitOrderStatus.ON_HOLD: {SplitOrderStatus.NEW, SplitOrderStatus.CONFIRM, SplitOrderStatus.CANCELLED},
    SplitOrderStatus.CONFIRM: {SplitOrderStatus.READY_FOR_PICKUP, SplitOrderStatus.CANCELLED},
    SplitOrderStatus.READY_FOR_PICKUP: {SplitOrderStatus.OUT_FOR_DELIVERY, SplitOrderStatus.CANCELLED},
    SplitOrderStatus.OUT_FOR_DELIVERY: {SplitOrderStatus.DELIVERED, SplitOrderStatus.CANCELLED},
    SplitOrderStatus.DELIVERED: set(),  # terminal
    SplitOrderStatus.CANCELLED: set(),  # terminal
}

# Progress along the delivery path; ON_HOLD sits beside NEW
_STATUS_RANK = {
    SplitOrderStatus.NEW: 0,
    SplitOrderStatus.ON_HOLD: 0,
    SplitOrderStatus.CONFIRM: 1,
    SplitOrderStatus.READY_FOR_PICKUP: 2,
    SplitOrderStatus.OUT_FOR_DELIVERY: 3,
    SplitOrderStatus.DELIVERED: 4,
    SplitOrderStatus.CANCELLED: 5,
}

COURIER_STATUS_ORDER = (
    "ALLOTTED",
    "REACHED_PICKUP",
    "DISPATCHED",
    "ARRIVED_CUSTOMER_DOORSTEP",
    "DELIVERED",
)

COURIER_STATUS_TARGETS = {
    "ALLOTTED": SplitOrderStatus.READY_FOR_PICKUP,
    "REACHED_PICKUP": SplitOrderStatus.READY_FOR_PICKUP,
    "DISPATCHED": SplitOrderStatus.OUT_FOR_DELIVERY,
    "ARRIVED_CUSTOMER_DOORSTEP": SplitOrderStatus.OUT_FOR_DELIVERY,
    "DELIVERED": SplitOrderStatus.DELIVERED,
}

COURIER_CANCELLED = "CANCELLED"


def split_id_for(order_number: str, store_code: str) -> str:
    return f"{order_number}-{store_code}"


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@fulfillment.value_object(part_of="SplitOrder")
class CourierLinkage:
    """The courier task delivering this split and its last reported status."""

    task_id = String(max_length=100)
    status_code = String(max_length=50)
    message = String(max_length=500)
    tracking_url = String(max_length=500)


@fulfillment.value_object(part_of="SplitOrder")
class Payout:
    """What the courier charges for delivering this split."""

    price = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@fulfillment.entity(part_of="SplitOrder")
class SplitLineItem:
    """A (possibly partial) order line assigned to this store."""

    line_item_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    quantity = Integer(required=True, min_value=1)
    price = Float(default=0.0)
    reserved = Boolean(default=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@fulfillment.aggregate
class SplitOrder:
    order_reference_id = Identifier(required=True)
    order_number = String(required=True, max_length=100)
    store_code = String(required=True, max_length=50)
    store_name = String(max_length=255)
    items = HasMany(SplitLineItem)
    order_status = String(choices=SplitOrderStatus, default=SplitOrderStatus.NEW.value)
    on_hold_status = String(max_length=100, default="")
    on_hold_comment = String(max_length=500)
    cancellation = Text()  # JSON cancellation payload
    rider_name = String(max_length=255)
    rider_contact = String(max_length=50)
    timestamps = Text(default="{}")  # JSON map of transition name -> epoch ms
    courier = ValueObject(CourierLinkage)
    payout = ValueObject(Payout)
    erp_push_status = String(choices=ErpPushStatus)
    erp_reference = String(max_length=100)
    refund_status = String(choices=RefundStatus)
    refund_id = String(max_length=100)
    refund_amount = Float()
    last_error = String(max_length=1000)
    inventory_released = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_reference_id: str,
        order_number: str,
        store_code: str,
        store_name: str,
        items_data: list[dict],
        on_hold_status: str = "",
    ):
        """Create the split of an order for one store.

        A split carrying quantities that could not be reserved starts
        ON_HOLD with ``on_hold_status`` describing why.
        """
        if not items_data:
            raise ValidationError({"items": ["A split order needs at least one line item"]})

        now = datetime.now(UTC)
        status = SplitOrderStatus.ON_HOLD if on_hold_status else SplitOrderStatus.NEW
        split = cls(
            id=split_id_for(order_number, store_code),
            order_reference_id=order_reference_id,
            order_number=order_number,
            store_code=store_code,
            store_name=store_name,
            order_status=status.value,
            on_hold_status=on_hold_status,
            timestamps=json.dumps({"created": _epoch_ms(now)}),
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            split.add_items(SplitLineItem(**item_data))
        split.raise_(
            SplitOrderCreated(
                split_id=split.split_id(),
                order_reference_id=order_reference_id,
                order_number=order_number,
                store_code=store_code,
                order_status=status.value,
                on_hold_status=on_hold_status,
                items=json.dumps(items_data),
                item_count=len(items_data),
                created_at=now,
            )
        )
        return split

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def split_id(self) -> str:
        return str(self.id)

    def status(self) -> SplitOrderStatus:
        return SplitOrderStatus(self.order_status)

    def is_terminal(self) -> bool:
        return not _VALID_TRANSITIONS[self.status()]

    def timestamp_map(self) -> dict:
        return json.loads(self.timestamps or "{}")

    def _stamp(self, name: str, moment: datetime) -> None:
        stamps = self.timestamp_map()
        stamps[name] = _epoch_ms(moment)
        self.timestamps = json.dumps(stamps)
        self.updated_at = moment

    def _assert_can_transition(self, target_status: SplitOrderStatus) -> None:
        current = self.status()
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target_status.value)

    def quantities(self, reserved: bool | None = None) -> dict[str, int]:
        """Quantity per SKU, optionally limited to reserved or unreserved lines."""
        totals: dict[str, int] = defaultdict(int)
        for item in self.items or []:
            if reserved is None or bool(item.reserved) == reserved:
                totals[item.sku] += item.quantity
        return dict(totals)

    def line_items_payload(self) -> list[dict]:
        return [
            {
                "line_item_id": str(item.line_item_id),
                "sku": item.sku,
                "quantity": item.quantity,
                "price": item.price or 0.0,
            }
            for item in self.items or []
        ]

    def refundable_amount(self) -> float:
        return round(sum(item.quantity * (item.price or 0.0) for item in self.items or []), 2)

    def remaining_refundable_amount(self) -> float:
        return round(max(self.refundable_amount() - (self.refund_amount or 0.0), 0.0), 2)

    def has_active_courier_task(self) -> bool:
        return bool(self.courier and self.courier.task_id and self.courier.status_code != COURIER_CANCELLED)

    def record_error(self, message: str) -> None:
        self.last_error = message[:1000]
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def place_on_hold(self, on_hold_status: str, comment: str | None = None) -> None:
        self._assert_can_transition(SplitOrderStatus.ON_HOLD)
        now = datetime.now(UTC)
        self.order_status = SplitOrderStatus.ON_HOLD.value
        self.on_hold_status = on_hold_status
        self.on_hold_comment = comment
        self._stamp(SplitOrderStatus.ON_HOLD.value, now)
        self.raise_(
            SplitOrderPlacedOnHold(
                split_id=self.split_id(),
                on_hold_status=on_hold_status,
                on_hold_comment=comment,
                held_at=now,
            )
        )

    def update_on_hold_status(self, on_hold_status: str) -> None:
        """Change the hold reason without moving the split."""
        if self.is_terminal():
            raise InvalidTransition(self.order_status, self.order_status, "Split order is closed")
        now = datetime.now(UTC)
        self.on_hold_status = on_hold_status
        self.updated_at = now
        self.raise_(OnHoldStatusUpdated(split_id=self.split_id(), on_hold_status=on_hold_status, updated_at=now))

    def release_payment_hold(self) -> bool:
        """Lift a hold because the order has been paid.

        Stock holds stay in place. Returns whether anything changed.
        """
        if self.on_hold_status == OUT_OF_STOCK_HOLD:
            return False
        current = self.status()
        if current == SplitOrderStatus.ON_HOLD:
            self.order_status = SplitOrderStatus.NEW.value
        elif not (current == SplitOrderStatus.NEW and self.on_hold_status):
            return False

        now = datetime.now(UTC)
        previous = self.on_hold_status
        self.on_hold_status = ""
        self.updated_at = now
        self.raise_(PaymentHoldReleased(split_id=self.split_id(), previous_on_hold_status=previous, released_at=now))
        return True

    # -------------------------------------------------------------------
    # Confirmation and ERP
    # -------------------------------------------------------------------
    def confirm(self) -> None:
        """Confirm the split. Every line is reserved from here on."""
        self._assert_can_transition(SplitOrderStatus.CONFIRM)
        now = datetime.now(UTC)
        self.order_status = SplitOrderStatus.CONFIRM.value
        self.on_hold_status = ""
        self.erp_push_status = ErpPushStatus.PENDING.value
        for item in self.items or []:
            item.reserved = True
        self._stamp(SplitOrderStatus.CONFIRM.value, now)
        self.raise_(SplitOrderConfirmed(split_id=self.split_id(), store_code=self.store_code, confirmed_at=now))

    def assert_erp_push_allowed(self) -> None:
        if self.erp_push_status not in (ErpPushStatus.PENDING.value, ErpPushStatus.FAILED.value):
            raise ValidationError({"erp_push_status": ["Split order has no pending ERP push"]})
        if self.status() == SplitOrderStatus.CANCELLED:
            raise InvalidTransition(self.order_status, SplitOrderStatus.CONFIRM.value, "Split order is cancelled")

    def record_erp_push(self, erp_reference: str) -> None:
        now = datetime.now(UTC)
        self.erp_push_status = ErpPushStatus.PUSHED.value
        self.erp_reference = erp_reference
        self.last_error = None
        self._stamp("erp_push", now)
        self.raise_(SplitOrderPushedToErp(split_id=self.split_id(), erp_reference=erp_reference, pushed_at=now))

    def record_erp_failure(self, reason: str) -> None:
        now = datetime.now(UTC)
        self.erp_push_status = ErpPushStatus.FAILED.value
        self.record_error(f"ERP push failed: {reason}")
        self.raise_(SplitOrderErpPushFailed(split_id=self.split_id(), reason=reason, failed_at=now))

    # -------------------------------------------------------------------
    # Courier
    # -------------------------------------------------------------------
    def assert_dispatchable(self) -> None:
        if self.status() not in (SplitOrderStatus.CONFIRM, SplitOrderStatus.READY_FOR_PICKUP):
            raise InvalidTransition(
                self.order_status,
                SplitOrderStatus.READY_FOR_PICKUP.value,
                "Only confirmed split orders can be handed to a courier",
            )
        if self.has_active_courier_task():
            raise ValidationError({"courier": ["Split order already has a courier task"]})

    def link_courier_task(
        self,
        task_id: str,
        status_code: str | None = None,
        message: str | None = None,
        tracking_url: str | None = None,
        payout_price: float = 0.0,
        payout_tax: float = 0.0,
        payout_total: float = 0.0,
    ) -> None:
        now = datetime.now(UTC)
        self.courier = CourierLinkage(
            task_id=task_id,
            status_code=status_code,
            message=message,
            tracking_url=tracking_url,
        )
        self.payout = Payout(price=payout_price, tax=payout_tax, total=payout_total)
        self._stamp("courier_task", now)
        self.raise_(
            CourierTaskLinked(
                split_id=self.split_id(),
                task_id=task_id,
                payout_total=payout_total,
                linked_at=now,
            )
        )

    def record_courier_unserviceable(self, reason: str) -> None:
        """Keep the courier's refusal on the split; it stays dispatchable for a later attempt."""
        now = datetime.now(UTC)
        self.courier = CourierLinkage(message=reason[:500])
        self.record_error(f"Courier cannot serve split {self.split_id()}: {reason}")
        self._stamp("courier_unserviceable", now)
        self.raise_(CourierUnserviceable(split_id=self.split_id(), reason=reason[:500], checked_at=now))

    def _record_courier_status(self, status_code: str, message: str | None) -> None:
        self.courier = CourierLinkage(
            task_id=self.courier.task_id if self.courier else None,
            status_code=status_code,
            message=message or (self.courier.message if self.courier else None),
            tracking_url=self.courier.tracking_url if self.courier else None,
        )

    def _update_rider(self, rider_name: str | None, rider_contact: str | None) -> None:
        if rider_name:
            self.rider_name = rider_name
        if rider_contact:
            self.rider_contact = rider_contact

    def apply_courier_status(
        self,
        status_code: str,
        rider_name: str | None = None,
        rider_contact: str | None = None,
        message: str | None = None,
    ) -> bool:
        """Apply a courier callback. Returns False when the callback is stale or unknown."""
        code = status_code.upper()
        if code == COURIER_CANCELLED:
            self._record_courier_status(code, message)
            self.updated_at = datetime.now(UTC)
            return True
        if code not in COURIER_STATUS_TARGETS:
            return False

        last_code = self.courier.status_code if self.courier else None
        last_index = COURIER_STATUS_ORDER.index(last_code) if last_code in COURIER_STATUS_ORDER else -1
        if COURIER_STATUS_ORDER.index(code) <= last_index:
            return False

        current = self.status()
        target = COURIER_STATUS_TARGETS[code]
        if current != SplitOrderStatus.CANCELLED and _STATUS_RANK[target] < _STATUS_RANK[current]:
            return False

        now = datetime.now(UTC)
        if target == current:
            self._record_courier_status(code, message)
            self._update_rider(rider_name, rider_contact)
            self.updated_at = now
            self.raise_(
                CourierStatusRecorded(
                    split_id=self.split_id(),
                    status_code=code,
                    rider_name=self.rider_name,
                    rider_contact=self.rider_contact,
                    recorded_at=now,
                )
            )
            return True

        self._move_to(target, now, status_code=code, rider_name=rider_name, rider_contact=rider_contact)
        self._record_courier_status(code, message)
        return True

    def advance(self, target: SplitOrderStatus) -> None:
        """Manually move along the delivery path (store pickup, courier outages)."""
        if target not in (
            SplitOrderStatus.READY_FOR_PICKUP,
            SplitOrderStatus.OUT_FOR_DELIVERY,
            SplitOrderStatus.DELIVERED,
        ):
            raise ValidationError({"status": [f"{target.value} cannot be set manually"]})
        self._move_to(target, datetime.now(UTC))

    def _move_to(
        self,
        target: SplitOrderStatus,
        now: datetime,
        status_code: str | None = None,
        rider_name: str | None = None,
        rider_contact: str | None = None,
    ) -> None:
        self._assert_can_transition(target)
        self.order_status = target.value
        self.on_hold_status = ""
        self._update_rider(rider_name, rider_contact)
        self._stamp(target.value, now)

        if target == SplitOrderStatus.READY_FOR_PICKUP:
            self.raise_(SplitOrderReadyForPickup(split_id=self.split_id(), status_code=status_code, ready_at=now))
        elif target == SplitOrderStatus.OUT_FOR_DELIVERY:
            self.raise_(
                SplitOrderOutForDelivery(
                    split_id=self.split_id(),
                    task_id=self.courier.task_id if self.courier else None,
                    rider_name=self.rider_name,
                    rider_contact=self.rider_contact,
                    dispatched_at=now,
                )
            )
        elif target == SplitOrderStatus.DELIVERED:
            self.raise_(
                SplitOrderDelivered(
                    split_id=self.split_id(),
                    order_reference_id=str(self.order_reference_id),
                    store_code=self.store_code,
                    delivered_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason: str, cancelled_by: str | None = None, details: dict | None = None) -> bool:
        """Cancel the split. Cancelling a cancelled split is a no-op returning False."""
        current = self.status()
        if current == SplitOrderStatus.CANCELLED:
            return False
        self._assert_can_transition(SplitOrderStatus.CANCELLED)

        now = datetime.now(UTC)
        self.order_status = SplitOrderStatus.CANCELLED.value
        self.on_hold_status = ""
        self.cancellation = json.dumps(
            {
                "reason": reason,
                "cancelled_by": cancelled_by,
                "previous_status": current.value,
                "cancelled_at": now.isoformat(),
                **(details or {}),
            }
        )
        self._stamp("cancel", now)
        self.raise_(
            SplitOrderCancelled(
                split_id=self.split_id(),
                order_reference_id=str(self.order_reference_id),
                previous_status=current.value,
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )
        return True

    def mark_inventory_released(self) -> None:
        self.inventory_released = True

    # -------------------------------------------------------------------
    # Refund overlay
    # -------------------------------------------------------------------
    def assert_refundable(self) -> None:
        if self.refund_status == RefundStatus.REFUNDED.value:
            raise InvalidTransition(self.order_status, RefundStatus.REFUNDED.value, "Split order is already refunded")

    def assert_refund_amount(self, amount: float, transaction_amount: float | None = None) -> None:
        """Refunds never exceed what is left of the split's value or the original payment."""
        limit = self.remaining_refundable_amount()
        if transaction_amount is not None:
            limit = min(limit, transaction_amount)
        if round(amount, 2) > round(limit, 2):
            raise ValidationError(
                {"amount": [f"Refund of {amount:.2f} exceeds the refundable {limit:.2f} of split {self.split_id()}"]}
            )

    def record_refund(self, refund_id: str, amount: float) -> None:
        """Add a confirmed refund. The split is ``refunded`` once its full value is returned."""
        self.assert_refundable()
        self.assert_refund_amount(amount)
        now = datetime.now(UTC)
        self.refund_amount = round((self.refund_amount or 0.0) + amount, 2)
        self.refund_status = (
            RefundStatus.REFUNDED.value
            if self.remaining_refundable_amount() <= 0
            else RefundStatus.PARTIALLY_REFUNDED.value
        )
        self.refund_id = refund_id
        self._stamp("refund", now)
        self.raise_(
            SplitOrderRefunded(
                split_id=self.split_id(),
                order_reference_id=str(self.order_reference_id),
                refund_id=refund_id,
                amount=amount,
                refunded_at=now,
            )
        )
