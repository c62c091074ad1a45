"""Store registration: command and handler.

Store administration pushes store details here; re-registering an existing
code overwrites its synced details.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, Float, String, Text
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment
from fulfillment.store.store import Store, StoreStatus

logger = structlog.get_logger(__name__)


@fulfillment.command(part_of="Store")
class RegisterStore:
    """Register or re-sync a store."""

    code = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    erp_store_id = String(max_length=100)
    status = String(choices=StoreStatus, default=StoreStatus.ACTIVE.value)
    latitude = Float()
    longitude = Float()
    delivery_radius_tiers = Text()  # JSON list of {"radius_km", "tier"}
    backup_store_code = String(max_length=50)
    is_backup_warehouse = Boolean(default=False)
    cluster = String(max_length=100)
    pincodes = Text()  # JSON list of pincodes


@fulfillment.command_handler(part_of=Store)
class RegisterStoreHandler:
    @handle(RegisterStore)
    def register_store(self, command):
        details = dict(
            erp_store_id=command.erp_store_id,
            status=command.status,
            latitude=command.latitude,
            longitude=command.longitude,
            delivery_radius_tiers=json.loads(command.delivery_radius_tiers or "[]"),
            backup_store_code=command.backup_store_code,
            is_backup_warehouse=command.is_backup_warehouse,
            cluster=command.cluster,
            pincodes=json.loads(command.pincodes or "[]"),
        )

        repo = current_domain.repository_for(Store)
        try:
            store = repo.get(command.code)
            store.resync(name=command.name, **details)
        except ObjectNotFoundError:
            store = Store.create(code=command.code, name=command.name, **details)
        repo.add(store)

        logger.info("Store registered", store_code=command.code, cluster=command.cluster)
        return command.code
