"""Order splitting: commands and handler.

Splits an incoming order into one SplitOrder per serving store. Stock for
every reserved line is committed and every split is written in the same unit
of work, so a failure anywhere leaves neither reservations nor splits
behind. Re-delivering an order that has already been split returns the
existing split ids.

``SplitOrderManually`` is the operator's override: the whole order goes to
one chosen store, bypassing the engine.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.commerce import get_commerce
from fulfillment.commerce.port import Order
from fulfillment.config import get_settings
from fulfillment.domain import fulfillment
from fulfillment.errors import MissingLinkage, SplitPersistenceFailure
from fulfillment.inventory import ledger
from fulfillment.notifications import get_alert_board
from fulfillment.split_order.queries import splits_for_order
from fulfillment.split_order.split_order import SplitOrder
from fulfillment.splitting.engine import SplitEngine
from fulfillment.store.directory import get_store

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="SplitOrder")
class SplitIncomingOrder:
    """Split a commerce order across the stores that can serve it."""

    order_id = Identifier(required=True)


@fulfillment.command(part_of="SplitOrder")
class SplitOrderManually:
    """Send a whole commerce order to one store chosen by an operator."""

    order_id = Identifier(required=True)
    store_code = String(required=True, max_length=50)


def _assert_coverage(order: Order, splits: list[SplitOrder]) -> None:
    """Every order line must be assigned exactly once across the splits."""
    assigned: dict[str, int] = {}
    for split in splits:
        for item in split.items:
            assigned[str(item.line_item_id)] = assigned.get(str(item.line_item_id), 0) + item.quantity
    expected = {str(line.line_item_id): line.quantity for line in order.line_items}
    if assigned != expected:
        raise SplitPersistenceFailure(
            f"Split orders for order {order.order_number} do not cover its line items",
            order_id=order.order_id,
        )


def _fetch_order(order_id: str) -> Order:
    context = adapter_context()
    commerce = get_commerce()
    order = call_external(
        "commerce.get_order",
        lambda: commerce.get_order(context, order_id),
        context=context,
        order_id=order_id,
    )
    if order is None:
        raise MissingLinkage(f"Order {order_id} not found on the commerce platform", order_id=order_id)
    return order


def _save_splits(order: Order, splits: list[SplitOrder]) -> list[str]:
    _assert_coverage(order, splits)

    repo = current_domain.repository_for(SplitOrder)
    try:
        for split in splits:
            repo.add(split)
    except ValidationError:
        raise
    except Exception as exc:
        raise SplitPersistenceFailure(
            f"Split orders for order {order.order_number} could not be saved: {exc}",
            order_id=order.order_id,
        ) from exc

    get_alert_board().raise_alert(order.order_id, get_settings().new_order_alert_seconds)
    return [split.split_id() for split in splits]


@fulfillment.command_handler(part_of=SplitOrder)
class SplitIncomingOrderHandler:
    @handle(SplitIncomingOrder)
    def split_incoming_order(self, command):
        existing = splits_for_order(command.order_id)
        if existing:
            logger.info("Order already split", order_id=command.order_id, split_count=len(existing))
            return [split.split_id() for split in existing]

        order = _fetch_order(command.order_id)

        engine = SplitEngine()
        plan = engine.plan(order)

        for planned in plan.splits:
            for sku, quantity in planned.reservations().items():
                ledger.reserve(planned.store_code, sku, quantity, mode=engine.allocator.mode)

        splits = [
            SplitOrder.create(
                order_reference_id=order.order_id,
                order_number=order.order_number,
                store_code=planned.store_code,
                store_name=planned.store_name,
                items_data=planned.lines,
                on_hold_status=planned.on_hold_status(),
            )
            for planned in plan.splits
        ]
        split_ids = _save_splits(order, splits)

        logger.info("Order split", order_id=order.order_id, order_number=order.order_number, split_ids=split_ids)
        return split_ids

    @handle(SplitOrderManually)
    def split_order_manually(self, command):
        existing = splits_for_order(command.order_id)
        if existing:
            logger.info("Order already split", order_id=command.order_id, split_count=len(existing))
            return [split.split_id() for split in existing]

        store = get_store(command.store_code)
        if not store.is_active():
            raise ValidationError({"store_code": [f"Store {store.code} is {store.status}"]})

        order = _fetch_order(command.order_id)
        if not order.line_items:
            raise ValidationError({"order_id": [f"Order {order.order_number} has no line items"]})

        totals: dict[str, int] = {}
        for line in order.line_items:
            totals[line.sku] = totals.get(line.sku, 0) + line.quantity
        for sku, quantity in totals.items():
            ledger.reserve(store.code, sku, quantity)

        split = SplitOrder.create(
            order_reference_id=order.order_id,
            order_number=order.order_number,
            store_code=store.code,
            store_name=store.name,
            items_data=[
                {
                    "line_item_id": line.line_item_id,
                    "sku": line.sku,
                    "quantity": line.quantity,
                    "price": line.price,
                    "reserved": True,
                }
                for line in order.line_items
            ],
        )
        split_ids = _save_splits(order, [split])

        logger.info(
            "Order split manually",
            order_id=order.order_id,
            order_number=order.order_number,
            store_code=store.code,
            split_ids=split_ids,
        )
        return split_ids
