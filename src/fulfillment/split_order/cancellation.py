"""Split order cancellation: command and handler.

The courier task is cancelled before anything else; if the courier refuses,
the split is left untouched. Reserved stock is released exactly once, so a
repeated cancel is a no-op.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.commerce import get_commerce
from fulfillment.courier import get_courier
from fulfillment.courier_task.courier_task import CourierTask
from fulfillment.domain import fulfillment
from fulfillment.errors import ExternalCallFailure
from fulfillment.inventory import ledger
from fulfillment.notifications import get_alert_board, send_notification
from fulfillment.split_order.split_order import COURIER_CANCELLED, SplitOrder, SplitOrderStatus

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class CancelSplitOrder:
    split_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(max_length=255)
    details = Text()  # JSON object stored with the cancellation


def _cancel_courier_task(split: SplitOrder, context) -> None:
    task_id = split.courier.task_id
    courier = get_courier()
    result = call_external(
        "courier.cancel_task",
        lambda: courier.cancel_task(context, task_id),
        context=context,
        split_id=split.split_id(),
        task_id=task_id,
    )
    if not result.success:
        raise ExternalCallFailure(
            result.failure_reason or "Courier refused to cancel the task",
            operation="courier.cancel_task",
            retryable=False,
            split_id=split.split_id(),
            task_id=task_id,
        )

    task_repo = current_domain.repository_for(CourierTask)
    task = task_repo.get(task_id)
    task.cancel()
    task_repo.add(task)
    split.apply_courier_status(COURIER_CANCELLED)


def _release_inventory(split: SplitOrder) -> None:
    if split.inventory_released:
        return
    for sku, quantity in split.quantities(reserved=True).items():
        ledger.release(split.store_code, sku, quantity)
    split.mark_inventory_released()


@fulfillment.command_handler(part_of=SplitOrder)
class CancelSplitOrderHandler:
    @handle(CancelSplitOrder)
    def cancel_split_order(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        if split.status() == SplitOrderStatus.CANCELLED:
            logger.info("Split order already cancelled", split_id=command.split_id)
            return split.order_status

        details = json.loads(command.details) if command.details else None
        split.cancel(command.reason, command.cancelled_by, details)

        context = adapter_context()
        if split.has_active_courier_task():
            _cancel_courier_task(split, context)
        _release_inventory(split)

        commerce = get_commerce()
        try:
            result = call_external(
                "commerce.cancel_split",
                lambda: commerce.cancel_split(context, str(split.order_reference_id), split.split_id(), command.reason),
                context=context,
                split_id=split.split_id(),
            )
        except ExternalCallFailure as exc:
            split.record_error(f"Commerce cancellation failed: {exc.message}")
        else:
            if not result.success:
                split.record_error(f"Commerce cancellation failed: {result.failure_reason}")

        repo.add(split)
        get_alert_board().clear(str(split.order_reference_id))
        logger.info("Split order cancelled", split_id=command.split_id, reason=command.reason)
        send_notification(context, "cancelled", split.split_id(), {"order_number": split.order_number, "reason": command.reason})
        return split.order_status
