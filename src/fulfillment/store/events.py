"""Store directory events."""

from protean.fields import DateTime, Identifier, String, Text

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Store")
class StoreRegistered:
    """A store was registered (or re-synced) from store administration."""

    __version__ = 1

    store_code = Identifier(required=True)
    name = String(required=True)
    status = String(required=True)
    cluster = String()
    backup_store_code = String()
    pincodes = Text()  # JSON list of pincodes
    registered_at = DateTime(required=True)
