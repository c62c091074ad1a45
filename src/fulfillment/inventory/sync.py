"""Inventory maintenance: commands and handler.

ERP stock sync (pushed by the sync job, or pulled through the ERP port),
buffer/threshold adjustment, and hybrid stock recomputation.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from fulfillment.adapters import adapter_context, call_external
from fulfillment.domain import fulfillment
from fulfillment.erp import get_erp
from fulfillment.inventory import ledger
from fulfillment.inventory.modes import configured_mode
from fulfillment.inventory.record import InventoryRecord
from fulfillment.store.directory import get_store, stores_backed_by
from fulfillment.store.store import Store

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="InventoryRecord")
class SyncErpStock:
    """Write ERP on-hand counts for a store."""

    store_code = Identifier(required=True)
    levels = Text(required=True)  # JSON list of {"sku", "stock"}


@fulfillment.command(part_of="InventoryRecord")
class PullErpStock:
    """Fetch on-hand counts from the store's ERP and write them."""

    store_code = Identifier(required=True)


@fulfillment.command(part_of="InventoryRecord")
class SetStockLevels:
    """Adjust buffer and threshold stock of one record."""

    store_code = Identifier(required=True)
    sku = String(required=True, max_length=100)
    buffer_stock = Integer(min_value=0)
    threshold_stock = Integer(min_value=0)
    expected_revision = Integer()


@fulfillment.command(part_of="InventoryRecord")
class RecomputeHybridStock:
    """Re-derive hybrid stock, optionally limited to one store and/or SKU."""

    store_code = Identifier()
    sku = String(max_length=100)


def _parse_levels(raw: str) -> dict[str, int]:
    levels = {}
    for row in json.loads(raw):
        if "sku" not in row or "stock" not in row:
            raise ValidationError({"levels": ["Every level needs a sku and a stock"]})
        levels[str(row["sku"])] = int(row["stock"])
    return levels


def _apply_stock_levels(store: Store, levels: dict[str, int]) -> int:
    """Write ``levels`` as ERP stock of ``store`` and as backup stock of the stores it backs."""
    mode = configured_mode()
    for sku, stock in levels.items():
        ledger.sync_erp_stock(store.code, sku, stock, mode=mode)

    backed = stores_backed_by(store.code)
    for dependent in backed:
        for sku, stock in levels.items():
            ledger.sync_backup_stock(dependent.code, sku, stock, mode=mode)

    logger.info(
        "ERP stock synced",
        store_code=store.code,
        sku_count=len(levels),
        backed_stores=[s.code for s in backed],
    )
    return len(levels)


@fulfillment.command_handler(part_of=InventoryRecord)
class InventoryMaintenanceHandler:
    @handle(SyncErpStock)
    def sync_erp_stock(self, command):
        store = get_store(command.store_code)
        return _apply_stock_levels(store, _parse_levels(command.levels))

    @handle(PullErpStock)
    def pull_erp_stock(self, command):
        store = get_store(command.store_code)
        erp = get_erp()
        context = adapter_context()
        stock_levels = call_external(
            "erp.pull_stock",
            lambda: erp.pull_stock(context, store.erp_store_id),
            context=context,
            store_code=store.code,
        )
        return _apply_stock_levels(store, {level.sku: level.stock for level in stock_levels})

    @handle(SetStockLevels)
    def set_stock_levels(self, command):
        # Unknown stores must not grow records
        current_domain.repository_for(Store).get(command.store_code)
        record = ledger.adjust_levels(
            command.store_code,
            command.sku,
            buffer_stock=command.buffer_stock,
            threshold_stock=command.threshold_stock,
            expected_revision=command.expected_revision,
        )
        return record.revision

    @handle(RecomputeHybridStock)
    def recompute_hybrid_stock(self, command):
        mode = configured_mode()
        changed = 0
        for record in ledger.records_for(store_code=command.store_code, sku=command.sku):
            updated = ledger.recompute(record.store_code, record.sku, mode=mode)
            if updated.revision != record.revision:
                changed += 1

        logger.info("Hybrid stock recomputed", mode=mode.name, changed=changed)
        return changed
