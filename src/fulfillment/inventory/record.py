"""InventoryRecord aggregate: stock inputs and sellable quantity of one SKU at one store.

Records are keyed by ``"{store_code}::{sku}"``. Every mutation goes through
the ledger (``fulfillment.inventory.ledger``), which serializes writers per
record and bumps ``revision`` so that concurrent writers can compare-and-set.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String

from fulfillment.domain import fulfillment
from fulfillment.inventory.events import (
    ErpStockSynced,
    HybridStockRecomputed,
    StockConsumed,
    StockLevelsAdjusted,
    StockReleased,
    StockReserved,
)


def record_id(store_code: str, sku: str) -> str:
    return f"{store_code}::{sku}"


@fulfillment.aggregate
class InventoryRecord:
    store_code = String(required=True, max_length=50)
    sku = String(required=True, max_length=100)
    erp_stock = Integer(default=0)
    buffer_stock = Integer(default=0)
    backup_stock = Integer(default=0)
    threshold_stock = Integer(default=0)
    hybrid_stock = Integer(default=0)
    online_stock = Integer(default=0)
    hybrid_mode = String(max_length=50)
    revision = Integer(default=0)
    updated_at = DateTime()

    @invariant.post
    def stock_counts_are_never_negative(self):
        for name in ("hybrid_stock", "online_stock", "buffer_stock", "threshold_stock", "backup_stock"):
            if (getattr(self, name) or 0) < 0:
                raise ValidationError({name: [f"{name} cannot be negative"]})

    @classmethod
    def create(cls, store_code: str, sku: str):
        return cls(
            id=record_id(store_code, sku),
            store_code=store_code,
            sku=sku,
            updated_at=datetime.now(UTC),
        )

    # -------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------
    def sync_erp_stock(self, erp_stock: int | None = None, backup_stock: int | None = None) -> None:
        """Write counts pulled from the ERP. Negative ERP counts are clamped to zero."""
        now = datetime.now(UTC)
        if erp_stock is not None:
            self.erp_stock = max(0, erp_stock)
        if backup_stock is not None:
            self.backup_stock = max(0, backup_stock)
        self.updated_at = now
        self.raise_(
            ErpStockSynced(
                record_id=str(self.id),
                store_code=self.store_code,
                sku=self.sku,
                erp_stock=self.erp_stock,
                backup_stock=self.backup_stock,
                synced_at=now,
            )
        )

    def adjust_levels(self, buffer_stock: int | None = None, threshold_stock: int | None = None) -> None:
        now = datetime.now(UTC)
        if buffer_stock is not None:
            self.buffer_stock = buffer_stock
        if threshold_stock is not None:
            self.threshold_stock = threshold_stock
        self.updated_at = now
        self.raise_(
            StockLevelsAdjusted(
                record_id=str(self.id),
                buffer_stock=self.buffer_stock,
                threshold_stock=self.threshold_stock,
                adjusted_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Online commitments
    # -------------------------------------------------------------------
    def reserve(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Reserved quantity must be positive"]})
        now = datetime.now(UTC)
        self.online_stock = (self.online_stock or 0) + quantity
        self.updated_at = now
        self.raise_(
            StockReserved(
                record_id=str(self.id),
                quantity=quantity,
                online_stock=self.online_stock,
                reserved_at=now,
            )
        )

    def release(self, quantity: int) -> None:
        now = datetime.now(UTC)
        self.online_stock = max(0, (self.online_stock or 0) - quantity)
        self.updated_at = now
        self.raise_(
            StockReleased(
                record_id=str(self.id),
                quantity=quantity,
                online_stock=self.online_stock,
                released_at=now,
            )
        )

    def consume(self, quantity: int) -> None:
        """Drop a delivered quantity from both the reservation and the on-hand count.

        The ERP deducts the sale on its side; the next ERP sync overwrites
        ``erp_stock`` with its authoritative figure.
        """
        now = datetime.now(UTC)
        self.online_stock = max(0, (self.online_stock or 0) - quantity)
        self.erp_stock = max(0, (self.erp_stock or 0) - quantity)
        self.updated_at = now
        self.raise_(
            StockConsumed(
                record_id=str(self.id),
                quantity=quantity,
                erp_stock=self.erp_stock,
                online_stock=self.online_stock,
                consumed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Derived stock
    # -------------------------------------------------------------------
    def rederive(self, mode) -> None:
        """Recompute ``hybrid_stock`` under ``mode``; raises an event only on change."""
        previous = self.hybrid_stock or 0
        current = mode.hybrid_stock(self)
        self.hybrid_mode = mode.name
        if current == previous:
            return

        now = datetime.now(UTC)
        self.hybrid_stock = current
        self.updated_at = now
        self.raise_(
            HybridStockRecomputed(
                record_id=str(self.id),
                mode=mode.name,
                previous_hybrid_stock=previous,
                hybrid_stock=current,
                recomputed_at=now,
            )
        )

    def bump_revision(self) -> None:
        self.revision = (self.revision or 0) + 1
