"""Payment reconciliation: lifts payment holds once the order is paid."""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.commerce import get_commerce
from fulfillment.domain import fulfillment
from fulfillment.errors import MissingLinkage
from fulfillment.split_order.queries import splits_for_order
from fulfillment.split_order.split_order import SplitOrder

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class ReconcileOrderPayment:
    """Re-read the order's financial status and release payment holds if it is paid."""

    order_id = Identifier(required=True)


@fulfillment.command_handler(part_of=SplitOrder)
class PaymentReconciliationHandler:
    @handle(ReconcileOrderPayment)
    def reconcile_order_payment(self, command):
        commerce = get_commerce()
        context = adapter_context()
        order = call_external(
            "commerce.get_order",
            lambda: commerce.get_order(context, command.order_id),
            context=context,
            order_id=command.order_id,
        )
        if order is None:
            raise MissingLinkage(f"Order {command.order_id} not found on the commerce platform", order_id=command.order_id)

        if not order.is_paid():
            logger.info("Order not paid yet", order_id=command.order_id, financial_status=order.financial_status)
            return []

        repo = current_domain.repository_for(SplitOrder)
        released = []
        for split in splits_for_order(command.order_id):
            if split.release_payment_hold():
                repo.add(split)
                released.append(split.split_id())

        logger.info("Payment holds released", order_id=command.order_id, split_ids=released)
        return released
