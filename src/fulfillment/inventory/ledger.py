"""Inventory ledger: the only writer of InventoryRecord.

Each write takes the lock of its (store, SKU) record, reloads the record,
optionally compares its revision against the caller's expectation, applies
the change, re-derives hybrid stock and bumps the revision. Writers for
different records never wait on each other.
"""

import threading
from typing import Callable

import structlog
from protean import atomic_change
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from fulfillment.errors import OutOfStock, StaleInventoryRecord
from fulfillment.inventory.modes import InventoryMode, configured_mode
from fulfillment.inventory.record import InventoryRecord, record_id

logger = structlog.get_logger(__name__)

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def find_record(store_code: str, sku: str) -> InventoryRecord | None:
    try:
        return current_domain.repository_for(InventoryRecord).get(record_id(store_code, sku))
    except ObjectNotFoundError:
        return None


def records_for(store_code: str | None = None, sku: str | None = None) -> list[InventoryRecord]:
    repo = current_domain.repository_for(InventoryRecord)
    filters = {}
    if store_code:
        filters["store_code"] = store_code
    if sku:
        filters["sku"] = sku
    if filters:
        return repo._dao.query.filter(**filters).all().items
    return repo._dao.query.all().items


def apply_change(
    store_code: str,
    sku: str,
    change: Callable[[InventoryRecord], None],
    *,
    guard: Callable[[InventoryRecord], None] | None = None,
    expected_revision: int | None = None,
    create_missing: bool = False,
    mode: InventoryMode | None = None,
) -> InventoryRecord:
    """Compare-and-set one record.

    ``guard`` runs against the freshly loaded record before anything is
    written and may raise to abort. A stale ``expected_revision`` raises
    ``StaleInventoryRecord``.
    """
    mode = mode or configured_mode()
    key = record_id(store_code, sku)
    repo = current_domain.repository_for(InventoryRecord)

    with _lock_for(key):
        try:
            record = repo.get(key)
        except ObjectNotFoundError:
            if not create_missing:
                raise
            record = InventoryRecord.create(store_code, sku)

        if expected_revision is not None and (record.revision or 0) != expected_revision:
            raise StaleInventoryRecord(key, expected_revision, record.revision or 0)
        if guard is not None:
            guard(record)

        with atomic_change(record):
            change(record)
            record.rederive(mode)
            record.bump_revision()
        repo.add(record)
        return record


def sync_erp_stock(store_code: str, sku: str, erp_stock: int, mode: InventoryMode | None = None) -> InventoryRecord:
    return apply_change(
        store_code,
        sku,
        lambda record: record.sync_erp_stock(erp_stock=erp_stock),
        create_missing=True,
        mode=mode,
    )


def sync_backup_stock(
    store_code: str, sku: str, backup_stock: int, mode: InventoryMode | None = None
) -> InventoryRecord:
    return apply_change(
        store_code,
        sku,
        lambda record: record.sync_erp_stock(backup_stock=backup_stock),
        create_missing=True,
        mode=mode,
    )


def adjust_levels(
    store_code: str,
    sku: str,
    buffer_stock: int | None = None,
    threshold_stock: int | None = None,
    expected_revision: int | None = None,
    mode: InventoryMode | None = None,
) -> InventoryRecord:
    return apply_change(
        store_code,
        sku,
        lambda record: record.adjust_levels(buffer_stock=buffer_stock, threshold_stock=threshold_stock),
        expected_revision=expected_revision,
        create_missing=True,
        mode=mode,
    )


def reserve(store_code: str, sku: str, quantity: int, mode: InventoryMode | None = None) -> InventoryRecord:
    """Commit ``quantity`` to online orders, refusing to go beyond sellable stock."""
    mode = mode or configured_mode()

    def ensure_available(record: InventoryRecord) -> None:
        available = mode.hybrid_stock(record)
        if available < quantity:
            raise OutOfStock(
                sku,
                quantity,
                available,
                reason=f"Store {store_code} can sell {available} of {sku}, {quantity} requested",
            )

    try:
        record = apply_change(
            store_code, sku, lambda r: r.reserve(quantity), guard=ensure_available, mode=mode
        )
    except ObjectNotFoundError:
        raise OutOfStock(sku, quantity, 0, reason=f"Store {store_code} does not stock {sku}") from None

    logger.info("Stock reserved", store_code=store_code, sku=sku, quantity=quantity, online_stock=record.online_stock)
    return record


def confirm_allocation(
    store_code: str,
    sku: str,
    unreserved_quantity: int = 0,
    mode: InventoryMode | None = None,
) -> InventoryRecord:
    """Final check for a split being confirmed.

    Reserves any quantity the split holds without a reservation, then
    verifies that every online commitment on the record is still backed by
    stock. Both happen under the record's lock.
    """
    mode = mode or configured_mode()

    def ensure_backed(record: InventoryRecord) -> None:
        if unreserved_quantity and mode.hybrid_stock(record) < unreserved_quantity:
            raise OutOfStock(sku, unreserved_quantity, mode.hybrid_stock(record))
        committed = (record.online_stock or 0) + unreserved_quantity
        capacity = mode.capacity(record)
        if committed > capacity:
            raise OutOfStock(
                sku,
                committed,
                capacity,
                reason=f"Store {store_code} no longer holds stock for {committed} of {sku}",
            )

    def commit(record: InventoryRecord) -> None:
        if unreserved_quantity:
            record.reserve(unreserved_quantity)

    try:
        return apply_change(store_code, sku, commit, guard=ensure_backed, mode=mode)
    except ObjectNotFoundError:
        raise OutOfStock(sku, unreserved_quantity, 0, reason=f"Store {store_code} does not stock {sku}") from None


def release(store_code: str, sku: str, quantity: int, mode: InventoryMode | None = None) -> InventoryRecord:
    record = apply_change(store_code, sku, lambda r: r.release(quantity), mode=mode)
    logger.info("Stock released", store_code=store_code, sku=sku, quantity=quantity, online_stock=record.online_stock)
    return record


def consume(store_code: str, sku: str, quantity: int, mode: InventoryMode | None = None) -> InventoryRecord:
    return apply_change(store_code, sku, lambda r: r.consume(quantity), mode=mode)


def recompute(
    store_code: str,
    sku: str,
    mode: InventoryMode | None = None,
    attempts: int = 3,
) -> InventoryRecord:
    """Re-derive hybrid stock from a snapshot, writing only when it changed.

    The write is a compare-and-set against the snapshot's revision; a
    concurrent writer forces a fresh snapshot.
    """
    mode = mode or configured_mode()
    conflict = None
    for _ in range(attempts):
        snapshot = current_domain.repository_for(InventoryRecord).get(record_id(store_code, sku))
        if mode.hybrid_stock(snapshot) == (snapshot.hybrid_stock or 0) and snapshot.hybrid_mode == mode.name:
            return snapshot
        try:
            return apply_change(
                store_code,
                sku,
                lambda r: None,
                expected_revision=snapshot.revision or 0,
                mode=mode,
            )
        except StaleInventoryRecord as exc:
            conflict = exc
            logger.info("Recompute lost a race, retrying", store_code=store_code, sku=sku)
    raise conflict
