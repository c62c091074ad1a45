"""Split order holds: commands and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context
from fulfillment.domain import fulfillment
from fulfillment.notifications import send_notification
from fulfillment.split_order.split_order import SplitOrder

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class PlaceSplitOrderOnHold:
    """Park a new split order, e.g. while payment or stock is pending."""

    split_id = Identifier(required=True)
    on_hold_status = String(required=True, max_length=100)
    comment = String(max_length=500)


@fulfillment.command(part_of="SplitOrder")
class UpdateOnHoldStatus:
    split_id = Identifier(required=True)
    on_hold_status = String(max_length=100, default="")


@fulfillment.command_handler(part_of=SplitOrder)
class SplitOrderHoldHandler:
    @handle(PlaceSplitOrderOnHold)
    def place_on_hold(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        split.place_on_hold(command.on_hold_status, command.comment)
        repo.add(split)

        logger.info("Split order placed on hold", split_id=command.split_id, on_hold_status=command.on_hold_status)
        send_notification(
            adapter_context(),
            "on_hold",
            split.split_id(),
            {"order_number": split.order_number, "on_hold_status": command.on_hold_status},
        )

    @handle(UpdateOnHoldStatus)
    def update_on_hold_status(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        split.update_on_hold_status(command.on_hold_status or "")
        repo.add(split)
