"""Store aggregate: a physical retail location that can fulfil orders.

Stores are owned by store administration and synced into this context.
The fulfillment core only reads them: to resolve which store serves a
delivery address, which backup warehouse feeds a store, and which stores
share a cluster.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, String, Text

from fulfillment.domain import fulfillment
from fulfillment.store.events import StoreRegistered
from fulfillment.store.geo import GeoPoint, distance_km


class StoreStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@fulfillment.aggregate
class Store:
    code = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    erp_store_id = String(max_length=100)
    status = String(choices=StoreStatus, default=StoreStatus.ACTIVE.value)
    latitude = Float()
    longitude = Float()
    delivery_radius_tiers = Text(default="[]")  # JSON list of {"radius_km", "tier"}, innermost first
    backup_store_code = String(max_length=50)
    is_backup_warehouse = Boolean(default=False)
    cluster = String(max_length=100)
    pincodes = Text(default="[]")  # JSON list of serviced pincodes
    updated_at = DateTime()

    @classmethod
    def create(cls, code: str, name: str, **details):
        """Register a store synced from store administration."""
        store = cls(id=code, code=code, name=name)
        store.resync(name=name, **details)
        return store

    def resync(
        self,
        name: str,
        erp_store_id: str | None = None,
        status: str = StoreStatus.ACTIVE.value,
        latitude: float | None = None,
        longitude: float | None = None,
        delivery_radius_tiers: list[dict] | None = None,
        backup_store_code: str | None = None,
        is_backup_warehouse: bool = False,
        cluster: str | None = None,
        pincodes: list[str] | None = None,
    ) -> None:
        """Overwrite the synced details of the store."""
        if backup_store_code and backup_store_code == self.code:
            raise ValidationError({"backup_store_code": ["A store cannot be its own backup warehouse"]})

        now = datetime.now(UTC)
        self.name = name
        self.erp_store_id = erp_store_id or self.code
        self.status = status
        self.latitude = latitude
        self.longitude = longitude
        self.delivery_radius_tiers = json.dumps(_normalize_tiers(delivery_radius_tiers or []))
        self.backup_store_code = backup_store_code
        self.is_backup_warehouse = is_backup_warehouse
        self.cluster = cluster
        self.pincodes = json.dumps([str(p) for p in (pincodes or [])])
        self.updated_at = now
        self.raise_(
            StoreRegistered(
                store_code=self.code,
                name=name,
                status=status,
                cluster=cluster or "",
                backup_store_code=backup_store_code or "",
                pincodes=self.pincodes,
                registered_at=now,
            )
        )

    def is_active(self) -> bool:
        return self.status == StoreStatus.ACTIVE.value

    def location(self) -> GeoPoint | None:
        if self.latitude is None or self.longitude is None:
            return None
        return GeoPoint(latitude=self.latitude, longitude=self.longitude)

    def serviced_pincodes(self) -> list[str]:
        return json.loads(self.pincodes or "[]")

    def radius_tiers(self) -> list[dict]:
        return json.loads(self.delivery_radius_tiers or "[]")

    def max_delivery_radius_km(self) -> float:
        tiers = self.radius_tiers()
        return tiers[-1]["radius_km"] if tiers else 0.0

    def distance_to(self, point: GeoPoint | None) -> float | None:
        """Distance to ``point`` in km, or None when either side has no coordinates."""
        here = self.location()
        if here is None or point is None:
            return None
        return distance_km(here, point)

    def delivery_tier_for(self, point: GeoPoint) -> str | None:
        """Name of the innermost radius tier covering ``point``."""
        distance = self.distance_to(point)
        if distance is None:
            return None
        for tier in self.radius_tiers():
            if distance <= tier["radius_km"]:
                return tier["tier"]
        return None


def _normalize_tiers(tiers: list[dict]) -> list[dict]:
    normalized = []
    for tier in tiers:
        radius = float(tier["radius_km"])
        if radius <= 0:
            raise ValidationError({"delivery_radius_tiers": ["Radius must be positive"]})
        normalized.append({"radius_km": radius, "tier": str(tier.get("tier") or f"{radius:g}km")})
    return sorted(normalized, key=lambda t: t["radius_km"])
