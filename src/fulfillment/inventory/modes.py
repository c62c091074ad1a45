"""Inventory modes: how sellable (hybrid) stock is derived and which stores compete for an order.

The configured mode string is turned into one of three variants once per
computation; callers never branch on the raw setting.

    Primary            sellable stock at the order's primary store only
    PrimaryWithBackup  primary store, topped up from its backup warehouse allotment
                       when own stock drops below the threshold
    Cluster            every active store in the primary store's cluster competes
"""

from dataclasses import dataclass
from typing import ClassVar, Union

from fulfillment.config import get_settings
from fulfillment.store.directory import cluster_members
from fulfillment.store.store import Store


def _own_capacity(record) -> int:
    return (record.erp_stock or 0) - (record.buffer_stock or 0)


def _own_free(record) -> int:
    return max(0, _own_capacity(record) - (record.online_stock or 0))


@dataclass(frozen=True)
class Primary:
    name: ClassVar[str] = "primary"

    def hybrid_stock(self, record) -> int:
        free = _own_free(record)
        # Below threshold the SKU is treated as unavailable
        return free if free >= (record.threshold_stock or 0) else 0

    def capacity(self, record) -> int:
        """Total quantity the record can back, reserved or not."""
        return max(0, _own_capacity(record))

    def candidate_stores(self, primary: Store) -> list[Store]:
        return [primary]


@dataclass(frozen=True)
class PrimaryWithBackup:
    name: ClassVar[str] = "primary_with_backup"

    def hybrid_stock(self, record) -> int:
        free = _own_free(record)
        if free >= (record.threshold_stock or 0):
            return free
        # Reservations beyond own capacity have already drawn on the backup pool
        overflow = max(0, (record.online_stock or 0) - max(0, _own_capacity(record)))
        return free + max(0, (record.backup_stock or 0) - overflow)

    def capacity(self, record) -> int:
        return max(0, _own_capacity(record)) + (record.backup_stock or 0)

    def candidate_stores(self, primary: Store) -> list[Store]:
        return [primary]


@dataclass(frozen=True)
class Cluster:
    name: ClassVar[str] = "cluster"

    def hybrid_stock(self, record) -> int:
        return Primary().hybrid_stock(record)

    def capacity(self, record) -> int:
        return Primary().capacity(record)

    def candidate_stores(self, primary: Store) -> list[Store]:
        if not primary.cluster:
            return [primary]
        members = cluster_members(primary.cluster)
        if all(member.code != primary.code for member in members):
            members.append(primary)
        return members


InventoryMode = Union[Primary, PrimaryWithBackup, Cluster]

_MODES = {
    Primary.name: Primary,
    PrimaryWithBackup.name: PrimaryWithBackup,
    Cluster.name: Cluster,
}


def inventory_mode(name: str) -> InventoryMode:
    """Build the mode variant for a configured mode name."""
    try:
        return _MODES[name]()
    except KeyError:
        raise ValueError(f"Unsupported inventory mode: {name}") from None


def configured_mode() -> InventoryMode:
    return inventory_mode(get_settings().inventory_mode)
