"""Read-side lookups over registered stores."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from fulfillment.store.geo import GeoPoint
from fulfillment.store.store import Store, StoreStatus


def get_store(code: str) -> Store:
    return current_domain.repository_for(Store).get(code)


def find_store(code: str | None) -> Store | None:
    if not code:
        return None
    try:
        return get_store(code)
    except ObjectNotFoundError:
        return None


def active_stores() -> list[Store]:
    repo = current_domain.repository_for(Store)
    return repo._dao.query.filter(status=StoreStatus.ACTIVE.value).all().items


def cluster_members(cluster: str) -> list[Store]:
    """Active stores sharing ``cluster``."""
    repo = current_domain.repository_for(Store)
    return repo._dao.query.filter(cluster=cluster, status=StoreStatus.ACTIVE.value).all().items


def stores_backed_by(warehouse_code: str) -> list[Store]:
    """Stores that designate ``warehouse_code`` as their backup warehouse."""
    repo = current_domain.repository_for(Store)
    return repo._dao.query.filter(backup_store_code=warehouse_code).all().items


def store_for_pincode(pincode: str) -> Store | None:
    for store in sorted(active_stores(), key=lambda s: s.code):
        if str(pincode) in store.serviced_pincodes():
            return store
    return None


def nearest_covering_store(point: GeoPoint) -> Store | None:
    """Nearest active store whose outermost delivery radius covers ``point``."""
    covering = []
    for store in active_stores():
        distance = store.distance_to(point)
        if distance is not None and distance <= store.max_delivery_radius_km():
            covering.append((distance, store.code, store))
    if not covering:
        return None
    return min(covering, key=lambda entry: (entry[0], entry[1]))[2]


def resolve_primary_store(
    preferred_store_code: str | None,
    pincode: str | None,
    point: GeoPoint | None,
) -> Store | None:
    """Pick the store an order belongs to.

    An explicit (pickup) store wins, then the store servicing the delivery
    pincode, then the nearest store whose delivery radius covers the address.
    """
    preferred = find_store(preferred_store_code)
    if preferred is not None and preferred.is_active():
        return preferred

    if pincode:
        store = store_for_pincode(pincode)
        if store is not None:
            return store

    if point is not None:
        return nearest_covering_store(point)
    return None
