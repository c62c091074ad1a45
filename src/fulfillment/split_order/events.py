"""Split order domain events: immutable facts about split order state changes.

All events are past tense, versioned, and carry the split id plus the
fields downstream consumers (ERP sync, notifications, reporting) need.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="SplitOrder")
class SplitOrderCreated:
    """The split engine assigned part of an order to a store."""

    __version__ = 1

    split_id = Identifier(required=True)
    order_reference_id = Identifier(required=True)
    order_number = String(required=True)
    store_code = String(required=True)
    order_status = String(required=True)
    on_hold_status = String()
    items = Text(required=True)  # JSON list of line item dicts
    item_count = Integer(required=True)
    created_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderPlacedOnHold:
    __version__ = 1

    split_id = Identifier(required=True)
    on_hold_status = String(required=True)
    on_hold_comment = String()
    held_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class OnHoldStatusUpdated:
    __version__ = 1

    split_id = Identifier(required=True)
    on_hold_status = String()
    updated_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class PaymentHoldReleased:
    """The order was paid, so the split's hold was lifted."""

    __version__ = 1

    split_id = Identifier(required=True)
    previous_on_hold_status = String()
    released_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderConfirmed:
    __version__ = 1

    split_id = Identifier(required=True)
    store_code = String(required=True)
    confirmed_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderPushedToErp:
    __version__ = 1

    split_id = Identifier(required=True)
    erp_reference = String(required=True)
    pushed_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderErpPushFailed:
    """The ERP push failed; the split stays confirmed and can be retried."""

    __version__ = 1

    split_id = Identifier(required=True)
    reason = String(required=True)
    failed_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class CourierTaskLinked:
    __version__ = 1

    split_id = Identifier(required=True)
    task_id = Identifier(required=True)
    payout_total = Float()
    linked_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class CourierUnserviceable:
    """The courier declined to quote the delivery; no task was booked."""

    __version__ = 1

    split_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    checked_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class CourierStatusRecorded:
    """A courier update that did not change the split's status (e.g. arrival at doorstep)."""

    __version__ = 1

    split_id = Identifier(required=True)
    status_code = String(required=True)
    rider_name = String()
    rider_contact = String()
    recorded_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderReadyForPickup:
    __version__ = 1

    split_id = Identifier(required=True)
    status_code = String()
    ready_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderOutForDelivery:
    __version__ = 1

    split_id = Identifier(required=True)
    task_id = String()
    rider_name = String()
    rider_contact = String()
    dispatched_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderDelivered:
    __version__ = 1

    split_id = Identifier(required=True)
    order_reference_id = Identifier(required=True)
    store_code = String(required=True)
    delivered_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderCancelled:
    __version__ = 1

    split_id = Identifier(required=True)
    order_reference_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


@fulfillment.event(part_of="SplitOrder")
class SplitOrderRefunded:
    __version__ = 1

    split_id = Identifier(required=True)
    order_reference_id = Identifier(required=True)
    refund_id = String(required=True)
    amount = Float(required=True)
    refunded_at = DateTime(required=True)
