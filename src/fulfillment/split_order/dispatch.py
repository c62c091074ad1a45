"""Courier dispatch: books a delivery task for a confirmed split order.

The courier is asked for a serviceability quote first. When the drop location
or the rider pool cannot be served, the reason is kept on the split and no
task is booked.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.commerce import get_commerce
from fulfillment.commerce.port import ShippingMethod
from fulfillment.courier import get_courier
from fulfillment.courier_task.courier_task import CourierTask
from fulfillment.domain import fulfillment
from fulfillment.errors import ExternalCallFailure, MissingLinkage
from fulfillment.split_order.split_order import SplitOrder
from fulfillment.store.directory import get_store

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class DispatchCourierTask:
    split_id = Identifier(required=True)


def _pickup_details(store) -> dict:
    return {
        "store_code": store.code,
        "name": store.name,
        "latitude": store.latitude,
        "longitude": store.longitude,
    }


def _drop_details(order) -> dict:
    delivery = order.delivery
    return {
        "name": delivery.name,
        "phone": delivery.phone,
        "address": delivery.address,
        "pincode": delivery.pincode,
        "latitude": delivery.latitude,
        "longitude": delivery.longitude,
    }


@fulfillment.command_handler(part_of=SplitOrder)
class CourierDispatchHandler:
    @handle(DispatchCourierTask)
    def dispatch_courier_task(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        split.assert_dispatchable()

        context = adapter_context()
        commerce = get_commerce()
        order = call_external(
            "commerce.get_order",
            lambda: commerce.get_order(context, str(split.order_reference_id)),
            context=context,
            split_id=split.split_id(),
        )
        if order is None:
            raise MissingLinkage(
                f"Order {split.order_reference_id} not found on the commerce platform",
                split_id=split.split_id(),
            )
        if order.shipping_method == ShippingMethod.PICKUP.value:
            raise ValidationError({"shipping_method": ["Pickup orders are collected in store, not dispatched"]})

        store = get_store(split.store_code)
        pickup = _pickup_details(store)
        drop = _drop_details(order)
        courier = get_courier()
        quote = call_external(
            "courier.check_serviceability",
            lambda: courier.check_serviceability(context, pickup, drop),
            context=context,
            split_id=split.split_id(),
        )
        if not quote.serviceable:
            reason = quote.message or "Not serviceable"
            split.record_courier_unserviceable(reason)
            repo.add(split)
            logger.warning(
                "Courier cannot serve split",
                split_id=split.split_id(),
                location_serviceable=quote.location_serviceable,
                rider_serviceable=quote.rider_serviceable,
                reason=reason,
            )
            return None

        result = call_external(
            "courier.create_task",
            lambda: courier.create_task(context, split.split_id(), pickup, drop, split.line_items_payload()),
            context=context,
            split_id=split.split_id(),
        )
        if not result.success:
            raise ExternalCallFailure(
                result.failure_reason or "Courier refused the task",
                operation="courier.create_task",
                retryable=False,
                split_id=split.split_id(),
            )

        task_repo = current_domain.repository_for(CourierTask)
        try:
            task_repo.get(result.task_id)
        except ObjectNotFoundError:
            task_repo.add(
                CourierTask.create(
                    result.task_id,
                    split.split_id(),
                    pickup,
                    drop,
                    tracking_url=result.tracking_url,
                    status_code=result.status_code,
                )
            )

        split.link_courier_task(
            result.task_id,
            status_code=result.status_code,
            message=result.message,
            tracking_url=result.tracking_url,
            payout_price=quote.payout_price,
            payout_tax=quote.payout_tax,
            payout_total=quote.payout_total,
        )
        repo.add(split)

        logger.info(
            "Courier task booked",
            split_id=split.split_id(),
            task_id=result.task_id,
            payout_total=quote.payout_total,
        )
        return result.task_id
