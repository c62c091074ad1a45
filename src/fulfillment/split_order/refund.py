"""Split order refunds: command and handler.

A refund is issued against the order's original successful sale or capture
transaction, by default for what is left of the split's line value. The
amount is capped by that remainder and by the original transaction. A split
is ``partially_refunded`` until its whole value has been returned. Refund
status is an overlay next to the split's delivery status. Once the provider
confirms, the order's financial status becomes ``refunded`` when every split
of the order has been fully refunded and ``partially_refunded`` otherwise.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.commerce import get_commerce
from fulfillment.commerce.port import FinancialStatus
from fulfillment.domain import fulfillment
from fulfillment.errors import ExternalCallFailure, InvalidTransition, MissingLinkage
from fulfillment.payments import get_payments
from fulfillment.split_order.queries import splits_for_order
from fulfillment.split_order.split_order import RefundStatus, SplitOrder

logger = structlog.get_logger(__name__)

_REFUNDABLE_FINANCIAL_STATUSES = (FinancialStatus.PAID.value, FinancialStatus.PARTIALLY_REFUNDED.value)


@fulfillment.command(part_of="SplitOrder")
class RefundSplitOrder:
    split_id = Identifier(required=True)
    amount = Float(min_value=0.01)  # defaults to what is left of the split's value


def _order_financial_status(split: SplitOrder) -> str:
    siblings = [s for s in splits_for_order(str(split.order_reference_id)) if str(s.id) != str(split.id)]
    if split.refund_status == RefundStatus.REFUNDED.value and all(
        s.refund_status == RefundStatus.REFUNDED.value for s in siblings
    ):
        return FinancialStatus.REFUNDED.value
    return FinancialStatus.PARTIALLY_REFUNDED.value


@fulfillment.command_handler(part_of=SplitOrder)
class RefundSplitOrderHandler:
    @handle(RefundSplitOrder)
    def refund_split_order(self, command):
        repo = current_domain.repository_for(SplitOrder)
        split = repo.get(command.split_id)
        split.assert_refundable()
        order_id = str(split.order_reference_id)

        context = adapter_context()
        commerce = get_commerce()
        order = call_external(
            "commerce.get_order", lambda: commerce.get_order(context, order_id), context=context, order_id=order_id
        )
        if order is None:
            raise MissingLinkage(f"Order {order_id} not found on the commerce platform", order_id=order_id)
        if order.financial_status not in _REFUNDABLE_FINANCIAL_STATUSES:
            raise InvalidTransition(
                order.financial_status,
                RefundStatus.REFUNDED.value,
                f"Order {order.order_number} is {order.financial_status} and cannot be refunded",
            )

        payments = get_payments()
        transaction = call_external(
            "payments.find_original_transaction",
            lambda: payments.find_original_transaction(context, order_id),
            context=context,
            order_id=order_id,
        )
        if transaction is None or not transaction.is_original_payment():
            raise MissingLinkage(
                f"Order {order.order_number} has no successful sale or capture transaction",
                order_id=order_id,
                split_id=split.split_id(),
            )

        amount = command.amount or split.remaining_refundable_amount()
        if amount <= 0:
            raise ValidationError({"amount": [f"Split order {split.split_id()} has nothing left to refund"]})
        split.assert_refund_amount(amount, transaction.amount)

        # later partial refunds are keyed by the amount already returned
        key = f"refund-{split.split_id()}"
        if split.refund_amount:
            key = f"{key}-{round(split.refund_amount * 100)}"
        result = call_external(
            "payments.refund",
            lambda: payments.refund(context, order_id, transaction, amount, key),
            context=context,
            split_id=split.split_id(),
        )
        if not result.success:
            raise ExternalCallFailure(
                result.failure_reason or "Payment provider rejected the refund",
                operation="payments.refund",
                retryable=False,
                split_id=split.split_id(),
            )

        split.record_refund(result.refund_id, amount)
        financial_status = _order_financial_status(split)
        try:
            update = call_external(
                "commerce.update_financial_status",
                lambda: commerce.update_financial_status(context, order_id, financial_status),
                context=context,
                order_id=order_id,
            )
        except ExternalCallFailure as exc:
            split.record_error(f"Financial status update failed: {exc.message}")
        else:
            if not update.success:
                split.record_error(f"Financial status update failed: {update.failure_reason}")

        repo.add(split)
        logger.info(
            "Split order refunded",
            split_id=split.split_id(),
            refund_id=result.refund_id,
            amount=amount,
            financial_status=financial_status,
        )
        return result.refund_id
