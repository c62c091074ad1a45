"""Hybrid inventory allocator: sellable stock per store and the stores that can serve a SKU."""

from dataclasses import dataclass

from fulfillment.inventory.ledger import find_record
from fulfillment.inventory.modes import InventoryMode, configured_mode
from fulfillment.store.geo import GeoPoint
from fulfillment.store.store import Store


@dataclass(frozen=True)
class StoreAvailability:
    store_code: str
    store_name: str
    hybrid_stock: int
    distance_km: float | None


def _rank_key(candidate: StoreAvailability):
    # Nearest first, stores without coordinates last; deeper stock breaks ties
    return (
        candidate.distance_km is None,
        candidate.distance_km or 0.0,
        -candidate.hybrid_stock,
        candidate.store_code,
    )


class HybridInventoryAllocator:
    """Reads inventory under one mode, fixed for the lifetime of the allocator."""

    def __init__(self, mode: InventoryMode | None = None) -> None:
        self.mode = mode or configured_mode()

    def compute_hybrid_stock(self, store_code: str, sku: str) -> int:
        record = find_record(store_code, sku)
        if record is None:
            return 0
        return self.mode.hybrid_stock(record)

    def ranked_candidates(
        self,
        sku: str,
        primary: Store,
        delivery_point: GeoPoint | None = None,
    ) -> list[StoreAvailability]:
        """Every store the mode lets compete for ``primary``'s orders, best first."""
        candidates = [
            StoreAvailability(
                store_code=store.code,
                store_name=store.name,
                hybrid_stock=self.compute_hybrid_stock(store.code, sku),
                distance_km=store.distance_to(delivery_point),
            )
            for store in self.mode.candidate_stores(primary)
            if store.is_active()
        ]
        return sorted(candidates, key=_rank_key)

    def eligible_stores(
        self,
        sku: str,
        requested_qty: int,
        primary: Store,
        delivery_point: GeoPoint | None = None,
    ) -> list[str]:
        """Stores that can serve ``requested_qty`` of ``sku`` on their own, best first."""
        return [
            candidate.store_code
            for candidate in self.ranked_candidates(sku, primary, delivery_point)
            if candidate.hybrid_stock >= requested_qty
        ]
