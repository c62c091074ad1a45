"""Order split engine: decides which store ships which part of an order.

Planning is side-effect free: it reads stores and inventory and returns a
``SplitPlan``. Reserving stock and persisting split orders happen in the
``SplitIncomingOrder`` handler, inside one unit of work.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError

from fulfillment.commerce.port import Order, ShippingMethod
from fulfillment.config import get_settings
from fulfillment.errors import OutOfStock
from fulfillment.inventory.allocator import HybridInventoryAllocator, StoreAvailability
from fulfillment.split_order.split_order import OUT_OF_STOCK_HOLD, split_id_for
from fulfillment.store.directory import resolve_primary_store
from fulfillment.store.geo import GeoPoint

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Allocation:
    store_code: str
    quantity: int
    reserved: bool = True


@dataclass
class PlannedSplit:
    store_code: str
    store_name: str
    lines: list[dict] = field(default_factory=list)

    def on_hold_status(self) -> str:
        if any(not line["reserved"] for line in self.lines):
            return OUT_OF_STOCK_HOLD
        return ""

    def reservations(self) -> dict[str, int]:
        totals: dict[str, int] = {}
        for line in self.lines:
            if line["reserved"]:
                totals[line["sku"]] = totals.get(line["sku"], 0) + line["quantity"]
        return totals


@dataclass(frozen=True)
class SplitPlan:
    order_id: str
    order_number: str
    primary_store_code: str
    splits: tuple[PlannedSplit, ...]

    def split_ids(self) -> list[str]:
        return [split_id_for(self.order_number, split.store_code) for split in self.splits]


def allocate_greedy(requested: int, ranked: list[StoreAvailability]) -> tuple[list[Allocation], int]:
    """Take ``min(remaining, hybrid)`` from each store in rank order.

    Returns the allocations and the quantity no store could cover.
    """
    remaining = requested
    allocations = []
    for candidate in ranked:
        if remaining <= 0:
            break
        take = min(remaining, candidate.hybrid_stock)
        if take > 0:
            allocations.append(Allocation(candidate.store_code, take))
            remaining -= take
    return allocations, remaining


def _quantities_by_sku(order: Order) -> dict[str, int]:
    totals: dict[str, int] = {}
    for line in order.line_items:
        totals[line.sku] = totals.get(line.sku, 0) + line.quantity
    return totals


def _delivery_point(order: Order) -> GeoPoint | None:
    delivery = order.delivery
    if delivery.latitude is None or delivery.longitude is None:
        return None
    return GeoPoint(delivery.latitude, delivery.longitude)


class SplitEngine:
    def __init__(self, allocator: HybridInventoryAllocator | None = None, policy: str | None = None) -> None:
        self.allocator = allocator or HybridInventoryAllocator()
        self.policy = policy or get_settings().out_of_stock_policy

    def plan(self, order: Order) -> SplitPlan:
        if not order.line_items:
            raise ValidationError({"line_items": [f"Order {order.order_number} has no line items"]})

        point = _delivery_point(order)
        primary = resolve_primary_store(order.preferred_store_code, order.delivery.pincode, point)
        if primary is None:
            first_sku = order.line_items[0].sku
            raise OutOfStock(first_sku, order.line_items[0].quantity, 0, reason="no serving store")

        store_names = {primary.code: primary.name}
        queues: dict[str, list[Allocation]] = {}
        for sku, requested in _quantities_by_sku(order).items():
            ranked = self.allocator.ranked_candidates(sku, primary, point)
            if order.shipping_method == ShippingMethod.PICKUP.value:
                # The customer collects from the chosen store
                ranked = [candidate for candidate in ranked if candidate.store_code == primary.code]
            store_names.update({candidate.store_code: candidate.store_name for candidate in ranked})

            allocations, shortfall = allocate_greedy(requested, ranked)
            if shortfall:
                available = requested - shortfall
                if self.policy != "hold":
                    raise OutOfStock(sku, requested, available)
                logger.warning(
                    "Shortfall held at primary store",
                    order_id=order.order_id,
                    sku=sku,
                    requested=requested,
                    available=available,
                    store_code=primary.code,
                )
                allocations.append(Allocation(primary.code, shortfall, reserved=False))
            queues[sku] = allocations

        splits: dict[str, PlannedSplit] = {}
        for line in order.line_items:
            remaining = line.quantity
            queue = queues[line.sku]
            while remaining > 0:
                head = queue[0]
                take = min(remaining, head.quantity)
                split = splits.setdefault(
                    head.store_code, PlannedSplit(head.store_code, store_names.get(head.store_code, ""))
                )
                split.lines.append(
                    {
                        "line_item_id": line.line_item_id,
                        "sku": line.sku,
                        "quantity": take,
                        "price": line.price,
                        "reserved": head.reserved,
                    }
                )
                remaining -= take
                if take == head.quantity:
                    queue.pop(0)
                else:
                    queue[0] = Allocation(head.store_code, head.quantity - take, head.reserved)

        plan = SplitPlan(
            order_id=order.order_id,
            order_number=order.order_number,
            primary_store_code=primary.code,
            splits=tuple(splits.values()),
        )
        logger.info(
            "Order split planned",
            order_id=order.order_id,
            primary_store_code=primary.code,
            mode=self.allocator.mode.name,
            stores=[split.store_code for split in plan.splits],
        )
        return plan
