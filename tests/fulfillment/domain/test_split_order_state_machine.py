"""Tests for SplitOrder delivery transitions and courier callback ordering."""

import pytest
from fulfillment.errors import InvalidTransition
from fulfillment.split_order.events import (
    CourierStatusRecorded,
    CourierUnserviceable,
    SplitOrderDelivered,
    SplitOrderOutForDelivery,
    SplitOrderReadyForPickup,
)
from fulfillment.split_order.split_order import SplitOrder, SplitOrderStatus
from protean.exceptions import ValidationError


def _confirmed_split():
    split = SplitOrder.create(
        order_reference_id="ord-2001",
        order_number="2001",
        store_code="KR01",
        store_name="Koramangala",
        items_data=[{"line_item_id": "li-1", "sku": "SKU-X", "quantity": 1, "price": 100.0}],
    )
    split.confirm()
    split.link_courier_task("task-1", status_code="ACCEPTED", tracking_url="https://track/task-1")
    split._events.clear()
    return split


class TestCourierCallbacks:
    def test_allotted_moves_to_ready_for_pickup(self):
        split = _confirmed_split()
        assert split.apply_courier_status("ALLOTTED") is True
        assert split.order_status == SplitOrderStatus.READY_FOR_PICKUP.value
        assert split.courier.status_code == "ALLOTTED"
        assert any(isinstance(e, SplitOrderReadyForPickup) for e in split._events)

    def test_reached_pickup_after_allotted_is_informational(self):
        split = _confirmed_split()
        split.apply_courier_status("ALLOTTED")
        assert split.apply_courier_status("REACHED_PICKUP", rider_name="Ravi") is True
        assert split.order_status == SplitOrderStatus.READY_FOR_PICKUP.value
        assert split.rider_name == "Ravi"
        assert any(isinstance(e, CourierStatusRecorded) for e in split._events)

    def test_dispatched_moves_to_out_for_delivery_with_rider(self):
        split = _confirmed_split()
        split.apply_courier_status("ALLOTTED")
        split.apply_courier_status("DISPATCHED", rider_name="Ravi", rider_contact="9811111111")
        assert split.order_status == SplitOrderStatus.OUT_FOR_DELIVERY.value
        assert split.rider_contact == "9811111111"
        assert "out_for_delivery" in split.timestamp_map()
        assert any(isinstance(e, SplitOrderOutForDelivery) for e in split._events)

    def test_delivered_moves_to_delivered(self):
        split = _confirmed_split()
        for code in ("ALLOTTED", "DISPATCHED", "ARRIVED_CUSTOMER_DOORSTEP", "DELIVERED"):
            split.apply_courier_status(code)
        assert split.order_status == SplitOrderStatus.DELIVERED.value
        assert "delivered" in split.timestamp_map()
        assert any(isinstance(e, SplitOrderDelivered) for e in split._events)

    def test_stale_callback_is_noop(self):
        split = _confirmed_split()
        split.apply_courier_status("ALLOTTED")
        split.apply_courier_status("DISPATCHED")
        split._events.clear()

        assert split.apply_courier_status("ALLOTTED") is False
        assert split.order_status == SplitOrderStatus.OUT_FOR_DELIVERY.value
        assert split.courier.status_code == "DISPATCHED"
        assert split._events == []

    def test_repeated_callback_is_noop(self):
        split = _confirmed_split()
        split.apply_courier_status("ALLOTTED")
        assert split.apply_courier_status("ALLOTTED") is False

    def test_unknown_code_is_ignored(self):
        split = _confirmed_split()
        assert split.apply_courier_status("SEARCHING_FOR_PARTNER") is False
        assert split.order_status == SplitOrderStatus.CONFIRM.value

    def test_unreachable_status_raises(self):
        split = _confirmed_split()
        with pytest.raises(InvalidTransition):
            split.apply_courier_status("DISPATCHED")

    def test_callback_on_new_split_raises(self):
        split = SplitOrder.create(
            order_reference_id="ord-2002",
            order_number="2002",
            store_code="KR01",
            store_name="Koramangala",
            items_data=[{"line_item_id": "li-1", "sku": "SKU-X", "quantity": 1, "price": 100.0}],
        )
        with pytest.raises(InvalidTransition):
            split.apply_courier_status("ALLOTTED")

    def test_courier_cancelled_only_marks_linkage(self):
        split = _confirmed_split()
        split.apply_courier_status("ALLOTTED")
        assert split.apply_courier_status("cancelled") is True
        assert split.order_status == SplitOrderStatus.READY_FOR_PICKUP.value
        assert split.courier.status_code == "CANCELLED"
        assert split.has_active_courier_task() is False


class TestManualAdvance:
    def test_advance_through_delivery_path(self):
        split = _confirmed_split()
        split.advance(SplitOrderStatus.READY_FOR_PICKUP)
        split.advance(SplitOrderStatus.OUT_FOR_DELIVERY)
        split.advance(SplitOrderStatus.DELIVERED)
        assert split.order_status == SplitOrderStatus.DELIVERED.value

    def test_cannot_skip_steps(self):
        split = _confirmed_split()
        with pytest.raises(InvalidTransition):
            split.advance(SplitOrderStatus.DELIVERED)

    def test_cannot_advance_to_non_delivery_status(self):
        split = _confirmed_split()
        with pytest.raises(ValidationError):
            split.advance(SplitOrderStatus.CANCELLED)


class TestDispatchRules:
    def test_new_split_is_not_dispatchable(self):
        split = SplitOrder.create(
            order_reference_id="ord-2003",
            order_number="2003",
            store_code="KR01",
            store_name="Koramangala",
            items_data=[{"line_item_id": "li-1", "sku": "SKU-X", "quantity": 1, "price": 100.0}],
        )
        with pytest.raises(InvalidTransition):
            split.assert_dispatchable()

    def test_split_with_live_task_is_not_dispatchable(self):
        split = _confirmed_split()
        with pytest.raises(ValidationError):
            split.assert_dispatchable()

    def test_link_records_payout(self):
        split = _confirmed_split()
        split.link_courier_task("task-2", payout_price=40.0, payout_tax=7.2, payout_total=47.2)
        assert split.payout.total == 47.2
        assert split.courier.task_id == "task-2"

    def test_unserviceable_courier_is_recorded(self):
        split = SplitOrder.create(
            order_reference_id="ord-2004",
            order_number="2004",
            store_code="KR01",
            store_name="Koramangala",
            items_data=[{"line_item_id": "li-1", "sku": "SKU-X", "quantity": 1, "price": 100.0}],
        )
        split.confirm()
        split.record_courier_unserviceable("Outside delivery zone")

        assert split.courier.task_id is None
        assert split.courier.message == "Outside delivery zone"
        assert any(isinstance(e, CourierUnserviceable) for e in split._events)
        split.assert_dispatchable()
