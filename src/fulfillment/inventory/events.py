"""Inventory record events: facts about per-store, per-SKU stock changes."""

from protean.fields import DateTime, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="InventoryRecord")
class ErpStockSynced:
    """ERP on-hand (or backup allotment) counts were written to a record."""

    __version__ = 1

    record_id = Identifier(required=True)
    store_code = String(required=True)
    sku = String(required=True)
    erp_stock = Integer(required=True)
    backup_stock = Integer(required=True)
    synced_at = DateTime(required=True)


@fulfillment.event(part_of="InventoryRecord")
class StockLevelsAdjusted:
    """Buffer or threshold levels of a record were changed."""

    __version__ = 1

    record_id = Identifier(required=True)
    buffer_stock = Integer(required=True)
    threshold_stock = Integer(required=True)
    adjusted_at = DateTime(required=True)


@fulfillment.event(part_of="InventoryRecord")
class StockReserved:
    """Quantity was committed to a pending online order."""

    __version__ = 1

    record_id = Identifier(required=True)
    quantity = Integer(required=True)
    online_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@fulfillment.event(part_of="InventoryRecord")
class StockReleased:
    """A cancelled split returned its quantity to sellable stock."""

    __version__ = 1

    record_id = Identifier(required=True)
    quantity = Integer(required=True)
    online_stock = Integer(required=True)
    released_at = DateTime(required=True)


@fulfillment.event(part_of="InventoryRecord")
class StockConsumed:
    """A delivered split consumed its reservation and the on-hand count."""

    __version__ = 1

    record_id = Identifier(required=True)
    quantity = Integer(required=True)
    erp_stock = Integer(required=True)
    online_stock = Integer(required=True)
    consumed_at = DateTime(required=True)


@fulfillment.event(part_of="InventoryRecord")
class HybridStockRecomputed:
    """The sellable quantity of a record changed."""

    __version__ = 1

    record_id = Identifier(required=True)
    mode = String(required=True)
    previous_hybrid_stock = Integer(required=True)
    hybrid_stock = Integer(required=True)
    recomputed_at = DateTime(required=True)
