"""Split order confirmation and ERP push: commands and handler.

Confirming a split re-checks its stock under the inventory record locks,
reserves anything the split still holds without a reservation, and pushes
the split to the store's ERP. An ERP failure does not undo the
confirmation: the split stays confirmed with the failure recorded, and
``RetryErpPush`` tries again.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.domain import fulfillment
from fulfillment.erp import get_erp
from fulfillment.errors import ExternalCallFailure
from fulfillment.inventory import ledger
from fulfillment.notifications import get_alert_board
from fulfillment.split_order.split_order import SplitOrder
from fulfillment.store.directory import get_store

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class ConfirmSplitOrder:
    split_id = Identifier(required=True)


@fulfillment.command(part_of="SplitOrder")
class RetryErpPush:
    split_id = Identifier(required=True)


def _push_to_erp(split: SplitOrder) -> None:
    store = get_store(split.store_code)
    erp = get_erp()
    context = adapter_context()
    try:
        ack = call_external(
            "erp.push_order",
            lambda: erp.push_order(
                context,
                store.erp_store_id or store.code,
                split.split_id(),
                split.order_number,
                split.line_items_payload(),
            ),
            context=context,
            split_id=split.split_id(),
        )
    except ExternalCallFailure as exc:
        split.record_erp_failure(exc.message)
        return

    if ack.success:
        split.record_erp_push(ack.reference or split.split_id())
        logger.info("Split order pushed to ERP", split_id=split.split_id(), erp_reference=split.erp_reference)
    else:
        reason = ack.failure_reason or "ERP rejected the order"
        split.record_erp_failure(reason)
        logger.warning("ERP rejected split order", split_id=split.split_id(), reason=reason)


@fulfillment.command_handler(part_of=SplitOrder)
class SplitOrderConfirmationHandler:
    @handle(ConfirmSplitOrder)
    def confirm_split_order(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)

        unreserved = split.quantities(reserved=False)
        requested = split.quantities()
        split.confirm()
        for sku in requested:
            ledger.confirm_allocation(split.store_code, sku, unreserved_quantity=unreserved.get(sku, 0))

        logger.info("Split order confirmed", split_id=command.split_id, store_code=split.store_code)
        get_alert_board().clear(str(split.order_reference_id))

        _push_to_erp(split)
        repo.add(split)
        return split.erp_push_status

    @handle(RetryErpPush)
    def retry_erp_push(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        split.assert_erp_push_allowed()

        _push_to_erp(split)
        repo.add(split)
        return split.erp_push_status
