"""Delivery progress: courier status callbacks and manual advancement.

Courier callbacks arrive with the courier's task id. Codes are applied in
courier order and a callback no later than the last one applied is a no-op.
Reaching DELIVERED consumes the split's reservation, ends the courier task
and marks the split fulfilled on the commerce platform.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.commerce import get_commerce
from fulfillment.courier_task.courier_task import CourierTask
from fulfillment.domain import fulfillment
from fulfillment.errors import ExternalCallFailure, MissingLinkage
from fulfillment.inventory import ledger
from fulfillment.notifications import send_notification
from fulfillment.split_order.split_order import SplitOrder, SplitOrderStatus

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class ApplyCourierStatus:
    """A status callback received from the courier."""

    task_id = Identifier()
    split_id = Identifier()
    status_code = String(required=True, max_length=50)
    message = String(max_length=500)
    rider_name = String(max_length=255)
    rider_contact = String(max_length=50)
    vehicle_number = String(max_length=50)
    vehicle_type = String(max_length=50)
    latitude = Float()
    longitude = Float()


@fulfillment.command(part_of="SplitOrder")
class AdvanceSplitOrder:
    """Move a split along the delivery path without a courier (e.g. store pickup)."""

    split_id = Identifier(required=True)
    target_status = String(required=True, choices=SplitOrderStatus)


def _find_task(task_id: str | None) -> CourierTask | None:
    if not task_id:
        return None
    try:
        return current_domain.repository_for(CourierTask).get(task_id)
    except ObjectNotFoundError:
        return None


def _partner_details(command) -> dict | None:
    details = {
        "name": command.rider_name,
        "contact": command.rider_contact,
        "vehicle_number": command.vehicle_number,
        "vehicle_type": command.vehicle_type,
        "latitude": command.latitude,
        "longitude": command.longitude,
    }
    if not any(value is not None for value in details.values()):
        return None
    return details


def _complete_delivery(split: SplitOrder) -> None:
    for sku, quantity in split.quantities().items():
        ledger.consume(split.store_code, sku, quantity)

    context = adapter_context()
    commerce = get_commerce()
    try:
        result = call_external(
            "commerce.fulfill_split",
            lambda: commerce.fulfill_split(
                context, str(split.order_reference_id), split.split_id(), split.line_items_payload()
            ),
            context=context,
            split_id=split.split_id(),
        )
    except ExternalCallFailure as exc:
        split.record_error(f"Commerce fulfillment failed: {exc.message}")
    else:
        if not result.success:
            split.record_error(f"Commerce fulfillment failed: {result.failure_reason}")

    send_notification(context, "delivered", split.split_id(), {"order_number": split.order_number})


def _after_status_change(split: SplitOrder, previous: str) -> None:
    if split.order_status == previous:
        return
    logger.info("Split order advanced", split_id=split.split_id(), from_status=previous, to_status=split.order_status)

    if split.order_status == SplitOrderStatus.OUT_FOR_DELIVERY.value:
        send_notification(
            adapter_context(),
            "out_for_delivery",
            split.split_id(),
            {
                "order_number": split.order_number,
                "rider_name": split.rider_name,
                "rider_contact": split.rider_contact,
                "tracking_url": split.courier.tracking_url if split.courier else None,
            },
        )
    elif split.order_status == SplitOrderStatus.DELIVERED.value:
        _complete_delivery(split)


@fulfillment.command_handler(part_of=SplitOrder)
class DeliveryProgressHandler:
    @handle(ApplyCourierStatus)
    def apply_courier_status(self, command):
        task = _find_task(command.task_id)
        split_id = str(task.split_id) if task else command.split_id
        if not split_id:
            raise MissingLinkage(f"No split order is linked to courier task {command.task_id}", task_id=command.task_id)

        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(split_id)
        previous = split.order_status

        applied = split.apply_courier_status(
            command.status_code,
            rider_name=command.rider_name,
            rider_contact=command.rider_contact,
            message=command.message,
        )
        if not applied:
            logger.info(
                "Stale courier callback ignored",
                split_id=split_id,
                status_code=command.status_code,
                order_status=split.order_status,
            )
            return split.order_status

        if task is not None:
            task.apply_status_code(command.status_code, _partner_details(command))
            current_domain.repository_for(CourierTask).add(task)

        _after_status_change(split, previous)
        repo.add(split)
        return split.order_status

    @handle(AdvanceSplitOrder)
    def advance_split_order(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        previous = split.order_status

        split.advance(SplitOrderStatus(command.target_status))
        _after_status_change(split, previous)
        repo.add(split)
        return split.order_status
